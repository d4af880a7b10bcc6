"""Batch download of the elevation tiles covering an area.

ElevationModel turns an AreaRequest into a DownloadBatch of TileFetchJobs and
advances it with non-blocking step() calls. The host loop owns the pacing:

    model = ElevationModel(scheme, cache, fetch)
    batch = model.plan_batch(request)
    while not model.is_complete(batch):
        status = await model.step(batch, cancel_event.is_set)
        if not status.progress:
            await asyncio.sleep(0.1)

The first failed job cancels every other unsettled job, so a batch either
yields all of its tiles or none.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from domain.models import TileCoordinate
from elevation.decoder import decode_terrarium_png
from geo.spatial_reference import SpatialReferenceSystem
from shared.constants import (
    DOWNLOAD_CONCURRENCY,
    STEP_IDLE_SLEEP_S,
    TILE_FETCH_TIMEOUT_S,
)
from shared.diagnostics import log_memory_usage
from tiles.job import JobState, TileFetchJob

if TYPE_CHECKING:
    from collections.abc import Callable

    from domain.models import AreaRequest, ElevationTile
    from geo.tiled_map import TiledMapScheme
    from tiles.cache import ElevationTileCache
    from tiles.job import TileFetchFn
    from tiles.writer import CacheWriter

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


@dataclass
class DownloadBatch:
    """Jobs of one area request and what they produced so far."""

    request: AreaRequest
    zoom: int
    jobs: list[TileFetchJob]
    tiles: dict[TileCoordinate, ElevationTile] = field(default_factory=dict)
    settled: int = 0
    failure: Exception | None = None
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.jobs)

    @property
    def pending(self) -> list[TileFetchJob]:
        """Jobs that have not settled yet, in poll order (a fresh list)."""
        return [job for job in self.jobs if not job.has_settled]

    @property
    def coordinates(self) -> list[TileCoordinate]:
        return [job.coordinate for job in self.jobs]

    @property
    def state(self) -> BatchState:
        if self.cancelled:
            return BatchState.CANCELLED
        if self.failure is not None:
            return BatchState.FAILED
        if self.settled == self.total:
            return BatchState.SUCCEEDED
        return BatchState.RUNNING


@dataclass(frozen=True)
class BatchStatus:
    """Result of one step: progress is the share of the batch settled by it."""

    progress: float
    settled: int
    total: int
    state: BatchState

    @property
    def fraction(self) -> float:
        return self.settled / self.total if self.total else 1.0


@dataclass(frozen=True)
class BatchOutcome:
    state: BatchState
    tiles: dict[TileCoordinate, ElevationTile]
    failure: Exception | None
    total: int
    elapsed_s: float

    @property
    def succeeded(self) -> bool:
        return self.state is BatchState.SUCCEEDED


class ElevationModel:
    """Plans and drives tile batches for area requests."""

    def __init__(
        self,
        scheme: TiledMapScheme,
        cache: ElevationTileCache,
        fetch: TileFetchFn,
        *,
        writer: CacheWriter | None = None,
        zoom: int | None = None,
        timeout_s: float = TILE_FETCH_TIMEOUT_S,
        concurrency: int = DOWNLOAD_CONCURRENCY,
        idle_sleep_s: float = STEP_IDLE_SLEEP_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.scheme = scheme
        self.zoom = scheme.max_zoom if zoom is None else min(zoom, scheme.max_zoom)
        self.timeout_s = timeout_s
        self.concurrency = max(1, int(concurrency))
        self.idle_sleep_s = idle_sleep_s
        self._cache = cache
        self._fetch = fetch
        self._writer = writer
        self._clock = clock

    def plan_batch(self, request: AreaRequest) -> DownloadBatch:
        """Create one job per tile covering the square around the origin.

        Raises:
            OutOfDomainError: a corner of the area cannot be projected.
        """
        srs = SpatialReferenceSystem(request.origin_lon, request.origin_lat)
        r = float(request.radius_m)
        south_west = srs.to_projected((-r, -r))
        north_east = srs.to_projected((r, r))

        a = self.scheme.tile_index_for(south_west, self.zoom)
        b = self.scheme.tile_index_for(north_east, self.zoom)
        x_min, x_max = min(a.x, b.x), max(a.x, b.x)
        # y grows southwards, so the north-east corner has the smaller row
        y_min, y_max = min(a.y, b.y), max(a.y, b.y)

        jobs = []
        for y in range(y_min, y_max + 1):
            for x in range(x_min, x_max + 1):
                coordinate = TileCoordinate(self.zoom, x, y)
                jobs.append(
                    TileFetchJob(
                        coordinate,
                        url=self.scheme.url_for(coordinate),
                        cache=self._cache,
                        fetch=self._fetch,
                        decode=decode_terrarium_png,
                        writer=self._writer,
                        timeout_s=self.timeout_s,
                        clock=self._clock,
                    )
                )
        logger.info(
            'Planned %d elevation tiles at zoom %d: x=%d..%d, y=%d..%d',
            len(jobs),
            self.zoom,
            x_min,
            x_max,
            y_min,
            y_max,
        )
        return DownloadBatch(request=request, zoom=self.zoom, jobs=jobs)

    async def step(
        self,
        batch: DownloadBatch,
        should_cancel: Callable[[], bool] | None = None,
    ) -> BatchStatus:
        """Advance the batch once without blocking.

        Polls the pending jobs in order and stops at the first one that
        settles; progress is 1/total in that case and 0 otherwise. At most
        `concurrency` downloads are open at once.
        """
        # Даём циклу событий продвинуть сетевые задачи
        await asyncio.sleep(0)

        if self.is_complete(batch):
            return self._status(batch, 0.0)

        if should_cancel is not None and should_cancel():
            logger.info('Elevation download cancelled by user')
            batch.cancelled = True
            self._cancel_unsettled(batch)
            return self._status(batch, 0.0)

        # Не более concurrency открытых запросов; остальные ждут в CACHE_MISS
        in_flight = sum(1 for job in batch.jobs if job.is_fetching)
        for job in batch.pending:
            was_fetching = job.is_fetching
            job.poll(allow_fetch=in_flight < self.concurrency)
            if job.is_fetching and not was_fetching:
                in_flight += 1
            if not job.has_settled:
                continue
            batch.settled += 1
            if job.succeeded:
                batch.tiles[job.coordinate] = job.tile
            else:
                batch.failure = job.error
                logger.error(
                    'Tile %s failed, aborting remaining %d tiles',
                    job.coordinate,
                    batch.total - batch.settled,
                )
                self._cancel_unsettled(batch)
            return self._status(batch, 1.0 / batch.total)

        return self._status(batch, 0.0)

    def is_complete(self, batch: DownloadBatch) -> bool:
        return batch.settled == batch.total

    def succeeded_all(self, batch: DownloadBatch) -> bool:
        return all(job.state is JobState.SUCCEEDED for job in batch.jobs)

    async def run(
        self,
        batch: DownloadBatch,
        should_cancel: Callable[[], bool] | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> BatchOutcome:
        """Drive the batch to completion, sleeping when a step made no progress."""
        started = time.monotonic()
        done = 0.0
        try:
            while not self.is_complete(batch):
                status = await self.step(batch, should_cancel)
                if status.progress:
                    done += status.progress
                    if on_progress is not None:
                        on_progress(min(1.0, done))
                elif not self.is_complete(batch):
                    await asyncio.sleep(self.idle_sleep_s)
        except BaseException:
            # Не оставляем висящих сетевых задач при внешней отмене
            self._cancel_unsettled(batch)
            raise

        elapsed = time.monotonic() - started
        state = batch.state
        if state is BatchState.SUCCEEDED and not self.succeeded_all(batch):
            state = BatchState.FAILED
        logger.info(
            'Elevation batch finished: %s, %d/%d tiles in %.2fs',
            state.value,
            len(batch.tiles),
            batch.total,
            elapsed,
        )
        log_memory_usage('after elevation download')
        return BatchOutcome(
            state=state,
            tiles=dict(batch.tiles) if state is BatchState.SUCCEEDED else {},
            failure=batch.failure,
            total=batch.total,
            elapsed_s=elapsed,
        )

    def _cancel_unsettled(self, batch: DownloadBatch) -> None:
        for job in batch.pending:
            job.cancel()
            batch.settled += 1

    def _status(self, batch: DownloadBatch, progress: float) -> BatchStatus:
        return BatchStatus(
            progress=progress,
            settled=batch.settled,
            total=batch.total,
            state=batch.state,
        )

"""Terrain build service - orchestrates the elevation pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

import numpy as np

from domain.errors import BatchCancelledError, BatchFailedError
from elevation.encoder import HeightRaster, HeightRasterEncoder
from elevation.model import BatchState, ElevationModel
from elevation.reproject import Reprojector
from geo.tiled_map import TiledMapScheme
from infrastructure.http.client import (
    fetch_tile_bytes,
    make_http_session,
    resolve_cache_dir,
)
from shared.constants import HTTP_BACKOFF_FACTOR, LAYER_WEIGHT_FULL
from shared.diagnostics import log_memory_usage, log_thread_status
from shared.progress import ConsoleProgress
from tiles.cache import ElevationTileCache
from tiles.writer import CacheWriter

if TYPE_CHECKING:
    from collections.abc import Callable

    import aiohttp

    from domain.models import AreaRequest, ElevationSettings, TileCoordinate
    from tiles.job import TileFetchFn

logger = logging.getLogger(__name__)


@dataclass
class TerrainBuildResult:
    """What the terrain consumer receives."""

    height_raster: HeightRaster
    layer_weights: dict[str, np.ndarray] = field(default_factory=dict)
    tiles_used: int = 0
    elapsed_s: float = 0.0


def build_layer_weights(request: AreaRequest) -> dict[str, np.ndarray]:
    """One uint8 weight raster per paint layer; only the first is painted."""
    size = request.size_px
    weights: dict[str, np.ndarray] = {}
    for i, layer in enumerate(request.layers):
        fill = LAYER_WEIGHT_FULL if i == 0 else 0
        weights[layer.name] = np.full((size, size), fill, dtype=np.uint8)
    return weights


class TerrainBuildService:
    """Builds a height raster for an area request.

    The HTTP session and the background cache writer live for the duration
    of one build() call unless a session or fetch function is injected.
    """

    def __init__(
        self,
        settings: ElevationSettings,
        *,
        session: aiohttp.ClientSession | None = None,
        fetch: TileFetchFn | None = None,
        show_progress: bool = False,
    ) -> None:
        self.settings = settings
        self.scheme = TiledMapScheme.terrarium(
            url_template=settings.url_template,
            num_levels=settings.num_zoom_levels,
        )
        self.cache = ElevationTileCache(resolve_cache_dir(settings.cache_dir))
        self.reprojector = Reprojector(self.scheme, settings.resample)
        self.encoder = HeightRasterEncoder()
        self.show_progress = show_progress
        self._session = session
        self._fetch = fetch

    async def build(
        self,
        request: AreaRequest,
        should_cancel: Callable[[], bool] | None = None,
    ) -> TerrainBuildResult:
        """
        Download, reproject and encode the elevation of the requested area.

        Raises:
            OutOfDomainError: the area cannot be projected.
            BatchFailedError: a tile could not be fetched or decoded.
            BatchCancelledError: should_cancel returned True.
        """
        started = time.monotonic()
        logger.info(
            'Building terrain: lon=%.6f lat=%.6f radius=%dm',
            request.origin_lon,
            request.origin_lat,
            request.radius_m,
        )
        log_memory_usage('before tile download')
        log_thread_status('before tile download')

        writer = CacheWriter(self.cache) if self.settings.async_cache_writes else None
        own_session = None
        fetch = self._fetch
        if fetch is None:
            session = self._session
            if session is None:
                own_session = make_http_session()
                session = own_session
            fetch = partial(self._fetch_with, session)

        if writer is not None:
            writer.start()
        try:
            model = ElevationModel(
                self.scheme,
                self.cache,
                fetch,
                writer=writer,
                zoom=self.settings.zoom,
                timeout_s=self.settings.fetch_timeout_s,
                concurrency=self.settings.download_concurrency,
                idle_sleep_s=self.settings.idle_sleep_s,
            )
            batch = model.plan_batch(request)
            progress = (
                ConsoleProgress(batch.total, label='Загрузка тайлов высот')
                if self.show_progress
                else None
            )
            try:
                outcome = await model.run(
                    batch,
                    should_cancel,
                    progress.update if progress is not None else None,
                )
            finally:
                if progress is not None:
                    progress.close()
        finally:
            if writer is not None:
                writer.stop()
            if own_session is not None:
                await own_session.close()

        if outcome.state is BatchState.CANCELLED:
            raise BatchCancelledError('Elevation download was cancelled')
        if not outcome.succeeded:
            raise BatchFailedError(outcome.failure, outcome.total)

        samples = self.reprojector.reproject(outcome.tiles, request)
        raster = self.encoder.encode(samples)
        weights = build_layer_weights(request)

        elapsed = time.monotonic() - started
        log_memory_usage('after terrain build')
        logger.info(
            'Terrain built: %dx%d from %d tiles in %.2fs',
            raster.width,
            raster.height,
            len(outcome.tiles),
            elapsed,
        )
        return TerrainBuildResult(
            height_raster=raster,
            layer_weights=weights,
            tiles_used=len(outcome.tiles),
            elapsed_s=elapsed,
        )

    async def _fetch_with(
        self,
        session: aiohttp.ClientSession,
        url: str,
        coordinate: TileCoordinate,
    ) -> bytes:
        return await fetch_tile_bytes(
            session,
            url,
            coordinate,
            async_timeout=self.settings.fetch_timeout_s,
            retries=self.settings.http_retries,
            backoff=HTTP_BACKOFF_FACTOR,
        )

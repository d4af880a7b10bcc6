"""Per-tile acquisition state machine.

A TileFetchJob is advanced by repeated non-blocking poll() calls made from a
coroutine running on the event loop. The network request runs as an
asyncio.Task that is only ever inspected, never awaited, by poll().

    CREATED -> CACHE_HIT -> DECODING -> SUCCEEDED
    CREATED -> CACHE_MISS -> FETCHING -> DECODING -> SUCCEEDED
    FETCHING -> FAILED          (timeout, network error)
    DECODING -> FAILED          (malformed payload)
    any non-terminal -> CANCELLED
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING

from domain.errors import TileDecodeError, TileError, TileNetworkError, TileTimeoutError
from shared.constants import TILE_FETCH_TIMEOUT_S

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from domain.models import ElevationTile, TileCoordinate
    from tiles.cache import ElevationTileCache
    from tiles.writer import CacheWriter

    TileFetchFn = Callable[[str, TileCoordinate], Awaitable[bytes]]
    TileDecodeFn = Callable[[bytes, TileCoordinate], ElevationTile]

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    CREATED = 'created'
    CACHE_HIT = 'cache_hit'
    CACHE_MISS = 'cache_miss'
    FETCHING = 'fetching'
    DECODING = 'decoding'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED})


class TileFetchJob:
    """Owns the lifecycle of one tile: cache lookup, download, decode."""

    def __init__(
        self,
        coordinate: TileCoordinate,
        *,
        url: str,
        cache: ElevationTileCache,
        fetch: TileFetchFn,
        decode: TileDecodeFn,
        writer: CacheWriter | None = None,
        timeout_s: float = TILE_FETCH_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.coordinate = coordinate
        self.url = url
        self.timeout_s = float(timeout_s)
        self.state = JobState.CREATED
        self.history: list[JobState] = [JobState.CREATED]
        self.started_at: float | None = None
        self.tile: ElevationTile | None = None
        self.error: Exception | None = None
        self._cache = cache
        self._fetch = fetch
        self._decode_payload = decode
        self._writer = writer
        self._clock = clock
        self._task: asyncio.Future[bytes] | None = None
        self._payload: bytes | None = None
        self._from_cache = False

    def __repr__(self) -> str:
        return f'TileFetchJob({self.coordinate}, state={self.state.value})'

    @property
    def has_settled(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.SUCCEEDED

    @property
    def has_open_request(self) -> bool:
        return self._task is not None

    @property
    def elapsed_s(self) -> float:
        """Seconds since the download started, 0 before that."""
        if self.started_at is None:
            return 0.0
        return self._clock() - self.started_at

    @property
    def is_fetching(self) -> bool:
        return self.state is JobState.FETCHING

    def poll(self, *, allow_fetch: bool = True) -> JobState:
        """Advance the job without blocking. Must run inside an event loop.

        With allow_fetch=False a cache miss waits in CACHE_MISS instead of
        opening a request; the download timer starts only with the request.
        """
        if self.has_settled:
            return self.state

        if self.state is JobState.CREATED:
            self._lookup_cache()
            if self.state is JobState.DECODING:
                self._decode()

        if self.state is JobState.CACHE_MISS:
            if allow_fetch:
                self._start_fetch()
        elif self.state is JobState.FETCHING:
            self._check_fetch()

        if self.state is JobState.DECODING:
            self._decode()

        return self.state

    def cancel(self) -> None:
        """Abort the job; no-op once settled."""
        if self.has_settled:
            return
        self._abort_request()
        self._payload = None
        self._transition(JobState.CANCELLED)

    def _transition(self, state: JobState) -> None:
        logger.debug('Tile %s: %s -> %s', self.coordinate, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _fail(self, error: Exception) -> None:
        self.error = error
        self._payload = None
        self._transition(JobState.FAILED)
        logger.error('Tile %s failed: %s', self.coordinate, error)

    def _lookup_cache(self) -> None:
        data = self._cache.read(self.coordinate)
        if data is None:
            self._transition(JobState.CACHE_MISS)
            return
        self._payload = data
        self._from_cache = True
        self._transition(JobState.CACHE_HIT)
        self._transition(JobState.DECODING)

    def _start_fetch(self) -> None:
        self._from_cache = False
        self._task = asyncio.ensure_future(self._fetch(self.url, self.coordinate))
        self.started_at = self._clock()
        self._transition(JobState.FETCHING)

    def _check_fetch(self) -> None:
        if self.elapsed_s > self.timeout_s:
            self._abort_request()
            self._fail(
                TileTimeoutError(
                    self.coordinate,
                    f'download time-out after {self.timeout_s:g}s. '
                    'Check your internet connection!',
                )
            )
            return

        task = self._task
        if task is None or not task.done():
            return
        self._task = None

        if task.cancelled():
            self._fail(TileNetworkError(self.coordinate, 'download was cancelled'))
            return
        exc = task.exception()
        if exc is not None:
            if not isinstance(exc, TileError):
                exc = TileNetworkError(self.coordinate, f'connection failure: {exc}')
            self._fail(exc)
            return

        self._payload = task.result()
        self._transition(JobState.DECODING)

    def _decode(self) -> None:
        data = self._payload or b''
        try:
            tile = self._decode_payload(data, self.coordinate)
        except TileDecodeError as e:
            if self._from_cache:
                # A corrupt cache entry is a miss, not a failure
                logger.warning('Discarding corrupt cached tile %s: %s', self.coordinate, e)
                self._cache.delete(self.coordinate)
                self._payload = None
                self._from_cache = False
                self._transition(JobState.CACHE_MISS)
                return
            self._fail(e)
            return

        if not self._from_cache:
            self._store(data)
        self._payload = None
        self.tile = tile
        self._transition(JobState.SUCCEEDED)

    def _store(self, data: bytes) -> None:
        if self._writer is not None:
            self._writer.put(self.coordinate, data)
        else:
            self._cache.write(self.coordinate, data)

    def _abort_request(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        if task.done():
            # Retrieve the outcome so the loop does not report it as unhandled
            if not task.cancelled():
                task.exception()
            return
        task.cancel()

"""Async writer thread for non-blocking cache writes.

This module provides CacheWriter class that handles tile writes
in a background thread so the stepping loop never waits for disk I/O.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models import TileCoordinate
    from tiles.cache import ElevationTileCache

from shared.constants import TILE_WRITE_QUEUE_SIZE

logger = logging.getLogger(__name__)


@dataclass
class TileWriteRequest:
    """Request to write a tile to cache."""

    coordinate: TileCoordinate
    data: bytes


class CacheWriter:
    """Background writer thread for the tile cache.

    Features:
    - Non-blocking put() method
    - Graceful shutdown with flush
    - Failed and dropped writes are only counted and logged

    Usage:
        cache = ElevationTileCache(cache_dir)
        writer = CacheWriter(cache)
        writer.start()

        # Non-blocking writes
        writer.put(TileCoordinate(15, 100, 200), tile_bytes)

        # Shutdown
        writer.stop()  # Waits for queue to drain
    """

    POLL_TIMEOUT = 1.0  # Seconds between checks of the running flag

    def __init__(
        self,
        cache: ElevationTileCache,
        max_queue_size: int | None = None,
    ) -> None:
        """Initialize cache writer.

        Args:
            cache: ElevationTileCache instance to write to.
            max_queue_size: Maximum queue size. Defaults to TILE_WRITE_QUEUE_SIZE.
        """
        self.cache = cache
        self.max_queue_size = max_queue_size or TILE_WRITE_QUEUE_SIZE
        self._queue: queue.Queue[TileWriteRequest | None] = queue.Queue(
            maxsize=self.max_queue_size
        )
        self._thread: threading.Thread | None = None
        self._running = False
        self._stats_written = 0
        self._stats_failed = 0
        self._stats_dropped = 0

    def start(self) -> None:
        """Start the background writer thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._writer_loop, name='CacheWriter', daemon=True
        )
        self._thread.start()
        logger.info('CacheWriter started')

    def stop(self, timeout: float = 30.0) -> None:
        """Stop the writer thread and wait for queue to drain.

        Args:
            timeout: Maximum time to wait for queue to drain.
        """
        if not self._running:
            return
        self._running = False

        # Signal thread to stop
        try:
            self._queue.put(None, block=True, timeout=timeout)
        except queue.Full:
            logger.warning('CacheWriter queue full on shutdown')

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning('CacheWriter thread did not stop within timeout')

        logger.info(
            'CacheWriter stopped: %d tiles written, %d failed, %d dropped',
            self._stats_written,
            self._stats_failed,
            self._stats_dropped,
        )

    def put(self, coordinate: TileCoordinate, data: bytes) -> bool:
        """Queue a tile for writing.

        Returns:
            True if tile was queued, False if queue was full or writer stopped.
        """
        if not self._running:
            self._stats_dropped += 1
            logger.warning('CacheWriter not running, dropping tile %s', coordinate)
            return False
        try:
            self._queue.put(TileWriteRequest(coordinate, data), block=False)
        except queue.Full:
            self._stats_dropped += 1
            logger.warning('Write queue full, dropping tile %s', coordinate)
            return False
        return True

    def queue_size(self) -> int:
        """Get current queue size."""
        return self._queue.qsize()

    def is_running(self) -> bool:
        """Check if writer thread is running."""
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def stats(self) -> dict:
        """Get writer statistics."""
        return {
            'written': self._stats_written,
            'failed': self._stats_failed,
            'dropped': self._stats_dropped,
            'queue_size': self.queue_size(),
            'running': self.is_running(),
        }

    def _writer_loop(self) -> None:
        """Background thread loop that processes write requests."""
        while True:
            try:
                request = self._queue.get(timeout=self.POLL_TIMEOUT)
            except queue.Empty:
                if not self._running:
                    break
                continue

            # None signals shutdown; everything queued before it is written
            if request is None:
                break

            if self.cache.write(request.coordinate, request.data):
                self._stats_written += 1
            else:
                self._stats_failed += 1

    def __enter__(self) -> CacheWriter:
        """Context manager entry - starts the writer."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - stops the writer."""
        self.stop()

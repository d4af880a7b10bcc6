"""File-based elevation tile cache.

This module provides ElevationTileCache class for storing and retrieving raw
elevation tiles as one file per tile, named after the tile coordinate.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from domain.models import TileCoordinate

logger = logging.getLogger(__name__)

_TILE_FILE_RE = re.compile(r'^elevation_(\d+)_(\d+)_(\d+)\.png$')


@dataclass
class CacheStats:
    """Statistics about the tile cache."""

    total_tiles: int
    total_size_bytes: int
    tiles_by_zoom: dict[int, int]
    size_by_zoom: dict[int, int]


class ElevationTileCache:
    """Best-effort on-disk store of raw provider responses.

    Features:
    - One file per tile: elevation_<z>_<x>_<y>.png
    - Atomic writes (temp file + rename), safe for concurrent writers
    - Any read problem is reported as a miss
    - Write failures are logged, never raised

    Usage:
        cache = ElevationTileCache('/tmp/elevation')
        cache.write(TileCoordinate(15, 100, 200), tile_bytes)
        data = cache.read(TileCoordinate(15, 100, 200))
    """

    def __init__(self, cache_dir: str | Path) -> None:
        """Initialize tile cache.

        Args:
            cache_dir: Directory for cache files. Created if missing.
        """
        self.cache_dir = Path(cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning('Cannot create cache dir %s: %s', self.cache_dir, e)
        logger.info('ElevationTileCache initialized at %s', self.cache_dir)

    def path_for(self, coordinate: TileCoordinate) -> Path:
        """Get file path for a tile."""
        return (
            self.cache_dir
            / f'elevation_{coordinate.zoom}_{coordinate.x}_{coordinate.y}.png'
        )

    def read(self, coordinate: TileCoordinate) -> bytes | None:
        """Get raw tile bytes from cache.

        Returns:
            Tile data as bytes, or None on a miss (absent, unreadable or empty).
        """
        path = self.path_for(coordinate)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.debug('Cache read failed for %s: %s', coordinate, e)
            return None
        if not data:
            return None
        return data

    def write(self, coordinate: TileCoordinate, data: bytes) -> bool:
        """Store raw tile bytes.

        Returns:
            True if the file was written.
        """
        path = self.path_for(coordinate)
        tmp_name: str | None = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.cache_dir, prefix=f'.{path.stem}.', suffix='.tmp'
            )
            with os.fdopen(fd, 'wb') as fh:
                fh.write(data)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.warning('Cache write failed for %s: %s', coordinate, e)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False
        return True

    def exists(self, coordinate: TileCoordinate) -> bool:
        """Check if tile exists in cache."""
        return self.path_for(coordinate).is_file()

    def delete(self, coordinate: TileCoordinate) -> bool:
        """Delete a tile from cache.

        Returns:
            True if tile was deleted.
        """
        try:
            self.path_for(coordinate).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning('Cache delete failed for %s: %s', coordinate, e)
            return False
        return True

    def _iter_tiles(self):
        if not self.cache_dir.is_dir():
            return
        for path in self.cache_dir.iterdir():
            m = _TILE_FILE_RE.match(path.name)
            if m is None or not path.is_file():
                continue
            zoom, x, y = (int(g) for g in m.groups())
            yield TileCoordinate(zoom, x, y), path

    def get_stats(self) -> CacheStats:
        """Get cache statistics across all zoom levels."""
        total_tiles = 0
        total_size = 0
        tiles_by_zoom: dict[int, int] = {}
        size_by_zoom: dict[int, int] = {}

        for coordinate, path in self._iter_tiles():
            try:
                size = path.stat().st_size
            except OSError:
                continue
            tiles_by_zoom[coordinate.zoom] = tiles_by_zoom.get(coordinate.zoom, 0) + 1
            size_by_zoom[coordinate.zoom] = size_by_zoom.get(coordinate.zoom, 0) + size
            total_tiles += 1
            total_size += size

        return CacheStats(
            total_tiles=total_tiles,
            total_size_bytes=total_size,
            tiles_by_zoom=tiles_by_zoom,
            size_by_zoom=size_by_zoom,
        )

    def clear(self, zoom: int | None = None) -> int:
        """Delete cached tiles, optionally only for one zoom level.

        Returns:
            Number of tiles deleted.
        """
        count = 0
        for coordinate, _path in list(self._iter_tiles()):
            if zoom is not None and coordinate.zoom != zoom:
                continue
            if self.delete(coordinate):
                count += 1
        logger.info('Cleared %d cached tiles (zoom=%s)', count, zoom)
        return count

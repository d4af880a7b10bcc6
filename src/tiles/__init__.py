"""Tile caching and acquisition.

This module provides:
- ElevationTileCache: one-file-per-tile storage of raw provider responses
- CacheWriter: background thread for non-blocking cache writes
- TileFetchJob: per-tile cache lookup / download / decode state machine
"""

from tiles.cache import CacheStats, ElevationTileCache
from tiles.job import JobState, TileFetchJob
from tiles.writer import CacheWriter, TileWriteRequest

__all__ = [
    'CacheStats',
    'CacheWriter',
    'ElevationTileCache',
    'JobState',
    'TileFetchJob',
    'TileWriteRequest',
]

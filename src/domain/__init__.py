"""Domain layer - tile keys, area requests and pipeline settings."""
from domain.models import (
    AreaRequest,
    BuildProfile,
    ElevationSettings,
    ElevationTile,
    PaintLayer,
    TileCoordinate,
    TileIndex,
)

__all__ = [
    'AreaRequest',
    'BuildProfile',
    'ElevationSettings',
    'ElevationTile',
    'PaintLayer',
    'TileCoordinate',
    'TileIndex',
]

"""Geo module - spatial reference and tiling scheme."""

from .spatial_reference import SpatialReferenceSystem, is_in_domain
from .tiled_map import TiledMapScheme

__all__ = [
    'SpatialReferenceSystem',
    'TiledMapScheme',
    'is_in_domain',
]

"""XYZ tiling scheme over the EPSG:3857 square."""

from __future__ import annotations

import math
from dataclasses import dataclass

from domain.models import TileCoordinate, TileIndex
from shared.constants import (
    TERRARIUM_NUM_LEVELS,
    TERRARIUM_URL_TEMPLATE,
    TILE_SIZE,
    WEB_MERCATOR_HALF_EXTENT_M,
)


@dataclass(frozen=True)
class TiledMapScheme:
    """Fixed tiling of the Web Mercator square.

    Tile (0, 0) is the north-western tile; x grows eastwards and y grows
    southwards, as in every XYZ provider.
    """

    tile_size_px: int = TILE_SIZE
    num_levels: int = TERRARIUM_NUM_LEVELS
    url_template: str = TERRARIUM_URL_TEMPLATE
    origin_x: float = -WEB_MERCATOR_HALF_EXTENT_M
    origin_y: float = WEB_MERCATOR_HALF_EXTENT_M
    extent: float = 2 * WEB_MERCATOR_HALF_EXTENT_M

    @classmethod
    def terrarium(
        cls,
        url_template: str = TERRARIUM_URL_TEMPLATE,
        num_levels: int = TERRARIUM_NUM_LEVELS,
    ) -> TiledMapScheme:
        """Terrarium elevation tiles (256 px, zoom 0..15)."""
        return cls(url_template=url_template, num_levels=num_levels)

    @property
    def max_zoom(self) -> int:
        return self.num_levels - 1

    def tiles_per_side(self, zoom: int) -> int:
        if not (0 <= zoom < self.num_levels):
            msg = f'Zoom {zoom} is outside 0..{self.max_zoom}'
            raise ValueError(msg)
        return 1 << zoom

    def _grid_position(
        self, projected: tuple[float, float], zoom: int
    ) -> tuple[float, float]:
        """Projected meters -> fractional tile position at zoom."""
        n = self.tiles_per_side(zoom)
        fx = (projected[0] - self.origin_x) / self.extent * n
        fy = (self.origin_y - projected[1]) / self.extent * n
        return fx, fy

    def tile_index_for(self, projected: tuple[float, float], zoom: int) -> TileIndex:
        """Tile containing a projected coordinate, clamped to the grid."""
        n = self.tiles_per_side(zoom)
        fx, fy = self._grid_position(projected, zoom)
        tx = min(max(math.floor(fx), 0), n - 1)
        ty = min(max(math.floor(fy), 0), n - 1)
        return TileIndex(tx, ty)

    def pixel_for(
        self, projected: tuple[float, float], zoom: int
    ) -> tuple[TileCoordinate, float, float]:
        """Tile and fractional pixel offset inside it for a projected coordinate."""
        fx, fy = self._grid_position(projected, zoom)
        index = self.tile_index_for(projected, zoom)
        px = (fx - index.x) * self.tile_size_px
        py = (fy - index.y) * self.tile_size_px
        return TileCoordinate(zoom, index.x, index.y), px, py

    def tile_bounds(
        self, coordinate: TileCoordinate
    ) -> tuple[float, float, float, float]:
        """Projected (west, south, east, north) of a tile."""
        n = self.tiles_per_side(coordinate.zoom)
        span = self.extent / n
        west = self.origin_x + coordinate.x * span
        north = self.origin_y - coordinate.y * span
        return west, north - span, west + span, north

    def url_for(self, coordinate: TileCoordinate) -> str:
        return (
            self.url_template.replace('{z}', str(coordinate.zoom))
            .replace('{x}', str(coordinate.x))
            .replace('{y}', str(coordinate.y))
        )

"""Resampling of decoded tiles into the local output grid."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy.ndimage import map_coordinates

from geo.spatial_reference import SpatialReferenceSystem
from shared.constants import RESAMPLE_ORDER, REPROJECT_STRIP_ROWS, ResampleMethod

if TYPE_CHECKING:
    from domain.models import AreaRequest, ElevationTile, TileCoordinate
    from geo.tiled_map import TiledMapScheme

logger = logging.getLogger(__name__)


class Reprojector:
    """Samples elevation for every cell of a 2r x 2r meter grid.

    Row 0 is the northern edge and column 0 the western edge; the cell
    (col, row) is centred at local offset (col - r + 0.5, r - row - 0.5).
    Cells that cannot be projected get 0 m.
    """

    def __init__(
        self,
        scheme: TiledMapScheme,
        method: ResampleMethod = ResampleMethod.BILINEAR,
        strip_rows: int = REPROJECT_STRIP_ROWS,
    ) -> None:
        self.scheme = scheme
        self.method = ResampleMethod(method)
        self.strip_rows = max(1, int(strip_rows))

    @property
    def order(self) -> int:
        return RESAMPLE_ORDER[self.method]

    def reproject(
        self,
        tiles: dict[TileCoordinate, ElevationTile],
        request: AreaRequest,
    ) -> np.ndarray:
        """Build the float32 elevation grid for the request.

        Raises:
            ValueError: tiles is empty, mixes zoom levels or lacks a tile
                covering some output cell.
        """
        if not tiles:
            msg = 'No tiles to reproject'
            raise ValueError(msg)
        zooms = {c.zoom for c in tiles}
        if len(zooms) != 1:
            msg = f'Tiles span several zoom levels: {sorted(zooms)}'
            raise ValueError(msg)
        zoom = zooms.pop()

        mosaic, x0, y0 = self._mosaic(tiles)
        srs = SpatialReferenceSystem(request.origin_lon, request.origin_lat)
        r = request.radius_m
        size = request.size_px
        ts = self.scheme.tile_size_px
        scale = self.scheme.tiles_per_side(zoom) * ts / self.scheme.extent

        out = np.zeros((size, size), dtype=np.float32)
        east = np.arange(size, dtype=np.float64) - r + 0.5
        invalid_total = 0

        for row_start in range(0, size, self.strip_rows):
            row_end = min(size, row_start + self.strip_rows)
            north = r - np.arange(row_start, row_end, dtype=np.float64) - 0.5
            ee, nn = np.meshgrid(east, north)
            x, y, valid = srs.to_projected_many(ee, nn)
            invalid_total += int(np.count_nonzero(~valid))
            if not np.any(valid):
                continue

            # Global pixel position at zoom, pixel centres at +0.5
            gx = (x[valid] - self.scheme.origin_x) * scale
            gy = (self.scheme.origin_y - y[valid]) * scale
            self._require_tiles(tiles, zoom, gx, gy)

            cols = gx - x0 * ts - 0.5
            rows = gy - y0 * ts - 0.5
            values = map_coordinates(
                mosaic,
                [rows, cols],
                order=self.order,
                mode='nearest',
            )
            strip = out[row_start:row_end]
            strip[valid] = values.astype(np.float32)

        if invalid_total:
            logger.warning(
                'Zero elevation used for %d cells outside the projection domain',
                invalid_total,
            )
        logger.info(
            'Reprojected %d tiles into %dx%d grid (%s)',
            len(tiles),
            size,
            size,
            self.method.value,
        )
        return out

    def sample(
        self,
        tiles: dict[TileCoordinate, ElevationTile],
        projected: tuple[float, float],
        zoom: int,
    ) -> float:
        """Elevation at one projected coordinate, from its own tile only."""
        coordinate, px, py = self.scheme.pixel_for(projected, zoom)
        tile = tiles.get(coordinate)
        if tile is None:
            msg = f'Tile {coordinate} is not loaded'
            raise ValueError(msg)
        value = map_coordinates(
            tile.samples,
            [[py - 0.5], [px - 0.5]],
            order=self.order,
            mode='nearest',
        )
        return float(value[0])

    def _mosaic(
        self, tiles: dict[TileCoordinate, ElevationTile]
    ) -> tuple[np.ndarray, int, int]:
        """Stitch tiles into one array; returns it with its top-left tile index."""
        ts = self.scheme.tile_size_px
        xs = [c.x for c in tiles]
        ys = [c.y for c in tiles]
        x0, y0 = min(xs), min(ys)
        nx = max(xs) - x0 + 1
        ny = max(ys) - y0 + 1
        mosaic = np.zeros((ny * ts, nx * ts), dtype=np.float32)
        for coordinate, tile in tiles.items():
            top = (coordinate.y - y0) * ts
            left = (coordinate.x - x0) * ts
            mosaic[top : top + ts, left : left + ts] = tile.samples
        return mosaic, x0, y0

    def _require_tiles(
        self,
        tiles: dict[TileCoordinate, ElevationTile],
        zoom: int,
        gx: np.ndarray,
        gy: np.ndarray,
    ) -> None:
        ts = self.scheme.tile_size_px
        n = self.scheme.tiles_per_side(zoom)
        tx = np.clip(np.floor(gx / ts), 0, n - 1).astype(np.int64)
        ty = np.clip(np.floor(gy / ts), 0, n - 1).astype(np.int64)
        needed = np.unique(np.stack([tx, ty], axis=1), axis=0)
        loaded = {(c.x, c.y) for c in tiles}
        missing = [(int(x), int(y)) for x, y in needed if (int(x), int(y)) not in loaded]
        if missing:
            first = missing[0]
            msg = (
                f'{len(missing)} tiles needed for reprojection are missing, '
                f'e.g. {zoom}/{first[0]}/{first[1]}'
            )
            raise ValueError(msg)


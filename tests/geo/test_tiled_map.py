"""Tests for geo.tiled_map module."""

import math

import pytest

from domain.models import TileCoordinate, TileIndex
from geo.tiled_map import TiledMapScheme
from shared.constants import WEB_MERCATOR_HALF_EXTENT_M

H = WEB_MERCATOR_HALF_EXTENT_M


@pytest.fixture
def scheme():
    return TiledMapScheme.terrarium()


def lonlat_to_tile(lon, lat, zoom):
    """Reference slippy-map tile formula."""
    n = 2**zoom
    x = int((lon + 180.0) / 360.0 * n)
    lat_r = math.radians(lat)
    y = int((1.0 - math.asinh(math.tan(lat_r)) / math.pi) / 2.0 * n)
    return x, y


class TestTiledMapScheme:
    """Tests for XYZ addressing."""

    def test_terrarium_defaults(self, scheme):
        assert scheme.tile_size_px == 256
        assert scheme.num_levels == 16
        assert scheme.max_zoom == 15
        assert scheme.tiles_per_side(15) == 32768

    def test_zoom_out_of_range(self, scheme):
        with pytest.raises(ValueError):
            scheme.tiles_per_side(16)
        with pytest.raises(ValueError):
            scheme.tiles_per_side(-1)

    def test_tile_index_quadrants(self, scheme):
        """y grows southwards from the north-western tile."""
        assert scheme.tile_index_for((-H / 2, H / 2), 1) == TileIndex(0, 0)
        assert scheme.tile_index_for((H / 2, H / 2), 1) == TileIndex(1, 0)
        assert scheme.tile_index_for((-H / 2, -H / 2), 1) == TileIndex(0, 1)
        assert scheme.tile_index_for((H / 2, -H / 2), 1) == TileIndex(1, 1)

    def test_tile_index_clamped(self, scheme):
        """Points on or beyond the edge stay inside the grid."""
        assert scheme.tile_index_for((H, -H), 2) == TileIndex(3, 3)
        assert scheme.tile_index_for((-2 * H, 2 * H), 2) == TileIndex(0, 0)

    @pytest.mark.parametrize(
        ('lon', 'lat'),
        [(13.4, 52.5), (-73.98, 40.75), (151.2, -33.87)],
    )
    def test_matches_slippy_formula(self, scheme, lon, lat):
        """Indices agree with the usual lon/lat tile formula."""
        from geo.spatial_reference import SpatialReferenceSystem

        projected = SpatialReferenceSystem(lon, lat).to_projected((0.0, 0.0))
        assert tuple(scheme.tile_index_for(projected, 12)) == lonlat_to_tile(lon, lat, 12)

    def test_tile_bounds(self, scheme):
        assert scheme.tile_bounds(TileCoordinate(1, 0, 0)) == pytest.approx(
            (-H, 0.0, 0.0, H)
        )
        west, south, east, north = scheme.tile_bounds(TileCoordinate(2, 3, 1))
        assert east - west == pytest.approx(H / 2)
        assert north - south == pytest.approx(H / 2)
        assert north == pytest.approx(H / 2)

    def test_pixel_for_tile_centre(self, scheme):
        coord, px, py = scheme.pixel_for((-H / 2, H / 2), 1)
        assert coord == TileCoordinate(1, 0, 0)
        assert px == pytest.approx(128.0)
        assert py == pytest.approx(128.0)

    def test_url_for(self, scheme):
        url = scheme.url_for(TileCoordinate(15, 17602, 10749))
        assert url == (
            'https://s3.amazonaws.com/elevation-tiles-prod/terrarium/15/17602/10749.png'
        )

    def test_custom_template(self):
        scheme = TiledMapScheme.terrarium(url_template='http://h/{z}-{y}-{x}')
        assert scheme.url_for(TileCoordinate(3, 1, 2)) == 'http://h/3-2-1'

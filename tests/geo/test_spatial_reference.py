"""Tests for geo.spatial_reference module."""

import math

import numpy as np
import pytest

from domain.errors import OutOfDomainError
from geo.spatial_reference import SpatialReferenceSystem, is_in_domain
from shared.constants import EARTH_RADIUS_M, WEB_MERCATOR_MAX_LAT_DEG


class TestIsInDomain:
    """Tests for the Web Mercator validity check."""

    def test_inside(self):
        assert is_in_domain(13.4, 52.5)
        assert is_in_domain(180.0, WEB_MERCATOR_MAX_LAT_DEG)

    def test_outside(self):
        assert not is_in_domain(0.0, 85.06)
        assert not is_in_domain(180.01, 0.0)
        assert not is_in_domain(-181.0, 0.0)


class TestSpatialReferenceSystem:
    """Tests for local -> geographic -> projected conversions."""

    def test_invalid_origin_rejected(self):
        """Origins outside the projection domain raise immediately."""
        with pytest.raises(OutOfDomainError):
            SpatialReferenceSystem(0.0, 89.0)

    def test_origin_maps_to_mercator_origin(self):
        """(0, 0) at the equator/meridian projects to (0, 0)."""
        srs = SpatialReferenceSystem(0.0, 0.0)
        x, y = srs.to_projected((0.0, 0.0))
        assert x == pytest.approx(0.0, abs=1e-6)
        assert y == pytest.approx(0.0, abs=1e-6)

    def test_east_offset_at_equator(self):
        """At the equator an eastward meter is a projected meter."""
        srs = SpatialReferenceSystem(0.0, 0.0)
        x, y = srs.to_projected((1000.0, 0.0))
        assert x == pytest.approx(1000.0, rel=1e-7)
        assert y == pytest.approx(0.0, abs=1e-6)

    def test_to_geographic_equirectangular(self):
        """Local offsets use the equirectangular approximation."""
        srs = SpatialReferenceSystem(10.0, 60.0)
        lon, lat = srs.to_geographic((1000.0, 2000.0))
        expected_lat = 60.0 + math.degrees(2000.0 / EARTH_RADIUS_M)
        expected_lon = 10.0 + math.degrees(
            1000.0 / (EARTH_RADIUS_M * math.cos(math.radians(60.0)))
        )
        assert lat == pytest.approx(expected_lat)
        assert lon == pytest.approx(expected_lon)

    def test_projection_matches_mercator_formula(self):
        """Projected y follows the spherical Mercator forward formula."""
        srs = SpatialReferenceSystem(13.4, 52.5)
        lon, lat = srs.to_geographic((500.0, -700.0))
        x, y = srs.to_projected((500.0, -700.0))
        assert x == pytest.approx(EARTH_RADIUS_M * math.radians(lon), rel=1e-7)
        assert y == pytest.approx(
            EARTH_RADIUS_M * math.log(math.tan(math.pi / 4 + math.radians(lat) / 2)),
            rel=1e-7,
        )

    def test_out_of_domain_offset_raises(self):
        """Offsets crossing the latitude limit raise OutOfDomainError."""
        srs = SpatialReferenceSystem(0.0, 85.0)
        with pytest.raises(OutOfDomainError):
            srs.to_projected((0.0, 10_000.0))

    def test_to_local_inverts_to_projected(self):
        srs = SpatialReferenceSystem(-73.98, 40.75)
        projected = srs.to_projected((1234.0, -567.0))
        east, north = srs.to_local(projected)
        assert east == pytest.approx(1234.0, abs=1e-3)
        assert north == pytest.approx(-567.0, abs=1e-3)

    def test_to_projected_many_matches_scalar(self):
        """The vectorised path agrees with to_projected and flags invalid points."""
        srs = SpatialReferenceSystem(0.0, 85.0)
        east = np.array([0.0, 100.0, 0.0])
        north = np.array([0.0, -100.0, 10_000.0])

        x, y, valid = srs.to_projected_many(east, north)

        assert valid.tolist() == [True, True, False]
        for i in range(2):
            sx, sy = srs.to_projected((east[i], north[i]))
            assert x[i] == pytest.approx(sx)
            assert y[i] == pytest.approx(sy)
        assert x[2] == 0.0
        assert y[2] == 0.0

"""Local tangent plane <-> WGS84 <-> EPSG:3857 conversions.

Local coordinates are meters east/north of a configured origin. They are
mapped to geographic degrees with an equirectangular approximation around the
origin and then projected with the spherical Web Mercator forward formula.
"""

from __future__ import annotations

import math
from functools import lru_cache

import numpy as np
from pyproj import CRS, Transformer

from domain.errors import OutOfDomainError
from shared.constants import (
    EARTH_RADIUS_M,
    WEB_MERCATOR_CODE,
    WEB_MERCATOR_MAX_LAT_DEG,
    WGS84_CODE,
    WORLD_LNG_HALF_SPAN_DEG,
)


@lru_cache(maxsize=1)
def _wgs84_to_mercator() -> Transformer:
    return Transformer.from_crs(
        CRS.from_epsg(WGS84_CODE),
        CRS.from_epsg(WEB_MERCATOR_CODE),
        always_xy=True,
    )


@lru_cache(maxsize=1)
def _mercator_to_wgs84() -> Transformer:
    return Transformer.from_crs(
        CRS.from_epsg(WEB_MERCATOR_CODE),
        CRS.from_epsg(WGS84_CODE),
        always_xy=True,
    )


def is_in_domain(lon: float, lat: float) -> bool:
    """Check that a WGS84 point can be projected to Web Mercator."""
    return (
        abs(lat) <= WEB_MERCATOR_MAX_LAT_DEG and abs(lon) <= WORLD_LNG_HALF_SPAN_DEG
    )


class SpatialReferenceSystem:
    """Conversions around a fixed origin (longitude/latitude in degrees).

    Usage:
        srs = SpatialReferenceSystem(origin_lon=13.4, origin_lat=52.5)
        x, y = srs.to_projected((-500.0, -500.0))
    """

    def __init__(self, origin_lon: float, origin_lat: float) -> None:
        if not is_in_domain(origin_lon, origin_lat):
            raise OutOfDomainError(origin_lon, origin_lat)
        self.origin_lon = float(origin_lon)
        self.origin_lat = float(origin_lat)
        self._m_per_deg_lat = math.radians(1.0) * EARTH_RADIUS_M
        self._m_per_deg_lon = self._m_per_deg_lat * math.cos(
            math.radians(self.origin_lat)
        )

    def __repr__(self) -> str:
        return (
            f'SpatialReferenceSystem(origin_lon={self.origin_lon}, '
            f'origin_lat={self.origin_lat})'
        )

    def to_geographic(self, local: tuple[float, float]) -> tuple[float, float]:
        """Local (east, north) meters -> (lon, lat) degrees, unchecked."""
        east, north = local
        lon = self.origin_lon + east / self._m_per_deg_lon
        lat = self.origin_lat + north / self._m_per_deg_lat
        return lon, lat

    def to_projected(self, local: tuple[float, float]) -> tuple[float, float]:
        """Local (east, north) meters -> EPSG:3857 (x, y).

        Raises:
            OutOfDomainError: if the point leaves the Web Mercator domain.
        """
        lon, lat = self.to_geographic(local)
        if not is_in_domain(lon, lat):
            raise OutOfDomainError(lon, lat)
        x, y = _wgs84_to_mercator().transform(lon, lat)
        return float(x), float(y)

    def to_projected_many(
        self,
        east: np.ndarray,
        north: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Vectorised to_projected.

        Returns:
            (x, y, valid) arrays of the broadcast shape. Invalid points have
            x = y = 0 and valid = False.
        """
        east_b, north_b = np.broadcast_arrays(
            np.asarray(east, dtype=np.float64), np.asarray(north, dtype=np.float64)
        )
        lon = self.origin_lon + east_b / self._m_per_deg_lon
        lat = self.origin_lat + north_b / self._m_per_deg_lat
        valid = (np.abs(lat) <= WEB_MERCATOR_MAX_LAT_DEG) & (
            np.abs(lon) <= WORLD_LNG_HALF_SPAN_DEG
        )
        x = np.zeros(lon.shape, dtype=np.float64)
        y = np.zeros(lon.shape, dtype=np.float64)
        if np.any(valid):
            px, py = _wgs84_to_mercator().transform(lon[valid], lat[valid])
            x[valid] = px
            y[valid] = py
        return x, y, valid

    def to_local(self, projected: tuple[float, float]) -> tuple[float, float]:
        """EPSG:3857 (x, y) -> local (east, north) meters."""
        lon, lat = _mercator_to_wgs84().transform(projected[0], projected[1])
        east = (lon - self.origin_lon) * self._m_per_deg_lon
        north = (lat - self.origin_lat) * self._m_per_deg_lat
        return float(east), float(north)

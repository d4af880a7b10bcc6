"""Exceptions raised by the elevation pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domain.models import TileCoordinate


class ElevationError(Exception):
    """Base exception for elevation pipeline errors."""


class OutOfDomainError(ElevationError):
    """Coordinate lies outside the valid Web Mercator domain."""

    def __init__(self, lon: float, lat: float) -> None:
        self.lon = lon
        self.lat = lat
        super().__init__(
            f'Coordinate lon={lon:.6f} lat={lat:.6f} is outside Web Mercator bounds'
        )


class TileError(ElevationError):
    """Error bound to a single tile."""

    def __init__(self, coordinate: TileCoordinate, message: str) -> None:
        self.coordinate = coordinate
        super().__init__(f'z/x/y={coordinate}: {message}')


class TileNetworkError(TileError):
    """Tile could not be downloaded."""


class TileTimeoutError(TileNetworkError):
    """Tile download did not finish in time."""


class TileDecodeError(TileError):
    """Tile payload is not a valid Terrarium PNG."""


class BatchFailedError(ElevationError):
    """At least one tile of a batch failed, so the batch was aborted."""

    def __init__(self, reason: BaseException | None, total: int) -> None:
        self.reason = reason
        self.total = total
        super().__init__(
            f'Could not download all {total} elevation tiles: {reason}'
        )


class BatchCancelledError(ElevationError):
    """Batch was cancelled by the user."""

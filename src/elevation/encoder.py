"""Fixed-point height raster for the terrain consumer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from shared.constants import HEIGHT_RASTER_MAX, HEIGHT_RASTER_MIN, ZERO_ELEVATION_OFFSET

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeightRaster:
    """uint16 grid: value = zero_offset + round(elevation_m)."""

    data: np.ndarray = field(repr=False)
    clamped_count: int = 0
    zero_offset: int = ZERO_ELEVATION_OFFSET

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def to_meters(self) -> np.ndarray:
        return self.data.astype(np.float32) - np.float32(self.zero_offset)


class HeightRasterEncoder:
    def __init__(self, zero_offset: int = ZERO_ELEVATION_OFFSET) -> None:
        self.zero_offset = int(zero_offset)

    def encode(self, samples: np.ndarray) -> HeightRaster:
        """Round, offset and clamp elevations; non-finite samples become 0 m."""
        arr = np.asarray(samples, dtype=np.float64)
        non_finite = ~np.isfinite(arr)
        if np.any(non_finite):
            logger.warning('Replacing %d non-finite samples with 0 m', int(non_finite.sum()))
            arr = np.where(non_finite, 0.0, arr)

        shifted = np.rint(arr) + self.zero_offset
        out_of_range = (shifted < HEIGHT_RASTER_MIN) | (shifted > HEIGHT_RASTER_MAX)
        clamped_count = int(np.count_nonzero(out_of_range))
        if clamped_count:
            logger.warning(
                'Clamped %d height samples to [%d, %d]',
                clamped_count,
                HEIGHT_RASTER_MIN,
                HEIGHT_RASTER_MAX,
            )
        data = np.clip(shifted, HEIGHT_RASTER_MIN, HEIGHT_RASTER_MAX).astype(np.uint16)
        return HeightRaster(
            data=data, clamped_count=clamped_count, zero_offset=self.zero_offset
        )

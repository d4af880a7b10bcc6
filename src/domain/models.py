from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple

import numpy as np
from pydantic import BaseModel, field_validator

from shared.constants import (
    DOWNLOAD_CONCURRENCY,
    HTTP_RETRIES_DEFAULT,
    STEP_IDLE_SLEEP_S,
    TERRARIUM_NUM_LEVELS,
    TERRARIUM_URL_TEMPLATE,
    TILE_FETCH_TIMEOUT_S,
    ResampleMethod,
)


@dataclass(frozen=True, order=True)
class TileCoordinate:
    """Key of one tile in the XYZ grid."""

    zoom: int
    x: int
    y: int

    def __str__(self) -> str:
        return f'{self.zoom}/{self.x}/{self.y}'


class TileIndex(NamedTuple):
    """Column/row of a tile at some zoom level."""

    x: int
    y: int


@dataclass(frozen=True)
class ElevationTile:
    """Decoded tile: elevation in meters, row 0 is the northern edge."""

    coordinate: TileCoordinate
    samples: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        self.samples.setflags(write=False)


class PaintLayer(BaseModel):
    """Paint layer descriptor owned by the terrain consumer."""

    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = 'Layer name must not be empty'
            raise ValueError(msg)
        return v


class AreaRequest(BaseModel):
    """Square area around an origin, radius in meters."""

    model_config = {
        'extra': 'ignore',
    }

    origin_lon: float
    origin_lat: float
    radius_m: int
    layers: list[PaintLayer] = []

    @field_validator('origin_lon')
    @classmethod
    def validate_lon(cls, v: float) -> float:
        if not (-180.0 <= v <= 180.0):
            msg = 'Longitude must be in [-180, 180]'
            raise ValueError(msg)
        return v

    @field_validator('origin_lat')
    @classmethod
    def validate_lat(cls, v: float) -> float:
        if not (-90.0 <= v <= 90.0):
            msg = 'Latitude must be in [-90, 90]'
            raise ValueError(msg)
        return v

    @field_validator('radius_m')
    @classmethod
    def validate_radius(cls, v: int) -> int:
        if v <= 0:
            msg = 'Radius must be positive'
            raise ValueError(msg)
        return v

    @field_validator('layers')
    @classmethod
    def validate_layers(cls, v: list[PaintLayer]) -> list[PaintLayer]:
        names = [layer.name for layer in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f'Duplicate layer names: {", ".join(duplicates)}'
            raise ValueError(msg)
        return v

    @property
    def size_px(self) -> int:
        """Side of the output raster (one cell per meter)."""
        return self.radius_m * 2


class ElevationSettings(BaseModel):
    """Pipeline configuration injected at construction time."""

    model_config = {
        'extra': 'ignore',
    }

    # None -> resolved from environment (see infrastructure.http.client)
    cache_dir: Path | None = None
    url_template: str = TERRARIUM_URL_TEMPLATE
    num_zoom_levels: int = TERRARIUM_NUM_LEVELS
    # None -> highest available level
    zoom: int | None = None
    fetch_timeout_s: float = TILE_FETCH_TIMEOUT_S
    idle_sleep_s: float = STEP_IDLE_SLEEP_S
    http_retries: int = HTTP_RETRIES_DEFAULT
    download_concurrency: int = DOWNLOAD_CONCURRENCY
    resample: ResampleMethod = ResampleMethod.BILINEAR
    async_cache_writes: bool = True

    @field_validator('url_template')
    @classmethod
    def validate_url_template(cls, v: str) -> str:
        missing = [p for p in ('{z}', '{x}', '{y}') if p not in v]
        if missing:
            msg = f'URL template is missing placeholders: {", ".join(missing)}'
            raise ValueError(msg)
        return v

    @field_validator('num_zoom_levels', 'http_retries', 'download_concurrency')
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            msg = 'Value must be >= 1'
            raise ValueError(msg)
        return v

    @field_validator('fetch_timeout_s', 'idle_sleep_s')
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        v = float(v)
        if v < 0:
            msg = 'Value must be >= 0'
            raise ValueError(msg)
        return v

    @field_validator('zoom')
    @classmethod
    def validate_zoom(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            msg = 'Zoom must be >= 0'
            raise ValueError(msg)
        return v


class BuildProfile(BaseModel):
    """Contents of a TOML profile: area plus pipeline settings."""

    area: AreaRequest
    elevation: ElevationSettings = ElevationSettings()

"""Elevation module - Terrarium decoding, batch download and resampling."""

from .decoder import decode_terrarium_png, terrarium_to_elevation_m
from .encoder import HeightRaster, HeightRasterEncoder
from .model import (
    BatchOutcome,
    BatchState,
    BatchStatus,
    DownloadBatch,
    ElevationModel,
)
from .reproject import Reprojector

__all__ = [
    'BatchOutcome',
    'BatchState',
    'BatchStatus',
    'DownloadBatch',
    'ElevationModel',
    'HeightRaster',
    'HeightRasterEncoder',
    'Reprojector',
    'decode_terrarium_png',
    'terrarium_to_elevation_m',
]

"""Terrarium PNG decoding.

Terrarium packs a signed elevation into 8-bit RGB channels:

    elevation = R * 256 + G + B / 256 - 32768

The alpha channel is ignored.
"""

from __future__ import annotations

import logging
import struct
from io import BytesIO

import numpy as np
from PIL import Image

from domain.errors import TileDecodeError
from domain.models import ElevationTile, TileCoordinate
from shared.constants import (
    TERRARIUM_CHANNELS,
    TERRARIUM_MAX_BIT_DEPTH,
    TERRARIUM_OFFSET_M,
    TILE_SIZE,
)

logger = logging.getLogger(__name__)

_PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
# signature(8) + chunk length(4) + b'IHDR'(4) + width(4) + height(4) + depth(1)
_IHDR_BIT_DEPTH_OFFSET = 24


def png_bit_depth(data: bytes) -> int:
    """Bits per channel declared in the PNG header."""
    if len(data) <= _IHDR_BIT_DEPTH_OFFSET or not data.startswith(_PNG_SIGNATURE):
        msg = 'not a PNG stream'
        raise ValueError(msg)
    if data[12:16] != b'IHDR':
        msg = 'PNG stream does not start with IHDR'
        raise ValueError(msg)
    (depth,) = struct.unpack_from('>B', data, _IHDR_BIT_DEPTH_OFFSET)
    return depth


def terrarium_to_elevation_m(rgba: np.ndarray) -> np.ndarray:
    """Unpack an (H, W, >=3) uint8 array to float32 meters."""
    arr = rgba.astype(np.float32)
    r = arr[:, :, 0]
    g = arr[:, :, 1]
    b = arr[:, :, 2]
    return (r * 256.0 + g + b / 256.0 - TERRARIUM_OFFSET_M).astype(np.float32)


def decode_terrarium_png(
    data: bytes,
    coordinate: TileCoordinate,
    *,
    tile_size: int = TILE_SIZE,
) -> ElevationTile:
    """Decode raw provider bytes into an ElevationTile.

    Raises:
        TileDecodeError: payload is not a tile_size x tile_size,
            4-channel PNG with at most 8 bits per channel.
    """
    try:
        bit_depth = png_bit_depth(data)
        with Image.open(BytesIO(data)) as img:
            if img.format != 'PNG':
                raise TileDecodeError(coordinate, f'unexpected format {img.format}')
            width, height = img.size
            if width != tile_size or height != tile_size:
                raise TileDecodeError(
                    coordinate,
                    f'PNG has wrong dimensions {width}x{height}, '
                    f'expected {tile_size}x{tile_size}',
                )
            bands = img.getbands()
            if len(bands) != TERRARIUM_CHANNELS or bit_depth > TERRARIUM_MAX_BIT_DEPTH:
                raise TileDecodeError(
                    coordinate,
                    f'unsupported PNG format mode={img.mode} bit_depth={bit_depth}',
                )
            # Shallower channels are widened to 8 bits by the conversion
            rgba = np.asarray(img.convert('RGBA'), dtype=np.uint8)
    except TileDecodeError:
        raise
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        # UnidentifiedImageError is an OSError
        raise TileDecodeError(coordinate, f'cannot decode PNG: {e}') from e

    samples = terrarium_to_elevation_m(rgba)
    logger.debug(
        'Decoded tile %s: min=%.1f max=%.1f', coordinate, samples.min(), samples.max()
    )
    return ElevationTile(coordinate=coordinate, samples=samples)


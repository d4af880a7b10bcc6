"""Tests for Terrarium PNG decoding."""

import struct
from io import BytesIO
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from domain.errors import TileDecodeError
from domain.models import TileCoordinate
from elevation.decoder import (
    decode_terrarium_png,
    png_bit_depth,
    terrarium_to_elevation_m,
)

COORD = TileCoordinate(15, 1, 2)


def solid_png(rgba, size=256, mode='RGBA'):
    arr = np.zeros((size, size, 4), dtype=np.uint8)
    arr[:, :] = rgba
    img = Image.fromarray(arr)
    if mode != 'RGBA':
        img = img.convert(mode)
    buf = BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


class TestTerrariumFormula:
    """Tests for the channel unpacking."""

    def test_zero_level(self):
        """(128, 0, 0) is sea level."""
        tile = decode_terrarium_png(solid_png((128, 0, 0, 255)), COORD)
        assert np.all(tile.samples == 0.0)

    def test_minimum(self):
        """(0, 0, 0) is the lowest representable value."""
        tile = decode_terrarium_png(solid_png((0, 0, 0, 255)), COORD)
        assert np.all(tile.samples == -32768.0)

    def test_fractional_blue(self):
        """Blue carries 1/256 m steps."""
        rgba = np.array([[[128, 10, 128, 255]]], dtype=np.uint8)
        assert terrarium_to_elevation_m(rgba)[0, 0] == pytest.approx(10.5)

    def test_alpha_ignored(self):
        """Transparent pixels decode like opaque ones."""
        opaque = decode_terrarium_png(solid_png((130, 20, 64, 255)), COORD)
        transparent = decode_terrarium_png(solid_png((130, 20, 64, 0)), COORD)
        np.testing.assert_array_equal(opaque.samples, transparent.samples)
        assert opaque.samples[0, 0] == pytest.approx(2 * 256 + 20 + 0.25)


class TestDecodeTerrariumPng:
    """Tests for validation of provider payloads."""

    def test_result_shape_and_immutability(self, png_factory):
        tile = decode_terrarium_png(png_factory(42.0), COORD)
        assert tile.coordinate == COORD
        assert tile.samples.shape == (256, 256)
        assert tile.samples.dtype == np.float32
        with pytest.raises(ValueError):
            tile.samples[0, 0] = 1.0

    def test_gradient_preserved(self, png_factory):
        """Row 0 of the image is row 0 of the samples."""
        elevation = np.tile(np.arange(256, dtype=np.float64)[:, None], (1, 256))
        tile = decode_terrarium_png(png_factory(elevation), COORD)
        assert tile.samples[0, 0] == pytest.approx(0.0)
        assert tile.samples[255, 0] == pytest.approx(255.0)

    def test_rejects_wrong_size(self, png_factory):
        with pytest.raises(TileDecodeError, match='dimensions 128x128'):
            decode_terrarium_png(png_factory(size=128), COORD)

    def test_rejects_three_channels(self, png_factory):
        with pytest.raises(TileDecodeError, match='unsupported PNG format'):
            decode_terrarium_png(png_factory(mode='RGB'), COORD)

    def test_rejects_deep_channels(self, png_factory):
        """More than 8 bits per channel is unsupported."""
        with patch('elevation.decoder.png_bit_depth', return_value=16):
            with pytest.raises(TileDecodeError):
                decode_terrarium_png(png_factory(), COORD)

    def test_rejects_non_png(self):
        buf = BytesIO()
        Image.new('RGB', (256, 256)).save(buf, format='JPEG')
        with pytest.raises(TileDecodeError) as exc_info:
            decode_terrarium_png(buf.getvalue(), COORD)
        assert exc_info.value.coordinate == COORD

    def test_rejects_truncated_png(self, png_factory):
        data = png_factory()
        with pytest.raises(TileDecodeError):
            decode_terrarium_png(data[: len(data) // 2], COORD)

    def test_rejects_empty(self):
        with pytest.raises(TileDecodeError):
            decode_terrarium_png(b'', COORD)


class TestPngBitDepth:
    """Tests for the IHDR header reader."""

    def test_reads_depth(self, png_factory):
        assert png_bit_depth(png_factory()) == 8

    def test_reads_crafted_header(self):
        header = (
            b'\x89PNG\r\n\x1a\n'
            + struct.pack('>I', 13)
            + b'IHDR'
            + struct.pack('>IIBBBBB', 256, 256, 16, 6, 0, 0, 0)
        )
        assert png_bit_depth(header) == 16

    def test_not_png(self):
        with pytest.raises(ValueError):
            png_bit_depth(b'GIF89a' + b'\x00' * 40)

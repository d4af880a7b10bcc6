"""Tests for HeightRasterEncoder."""

import logging

import numpy as np
import pytest

from elevation.encoder import HeightRaster, HeightRasterEncoder


@pytest.fixture
def encoder():
    return HeightRasterEncoder()


class TestHeightRasterEncoder:
    """Tests for fixed-point encoding."""

    def test_zero_and_minimum(self, encoder):
        raster = encoder.encode(np.array([[0.0, -32768.0]]))
        assert raster.data.tolist() == [[32768, 0]]
        assert raster.data.dtype == np.uint16
        assert raster.clamped_count == 0

    def test_rounding(self, encoder):
        raster = encoder.encode(np.array([[1.4, 1.6, -2.6]], dtype=np.float32))
        assert raster.data.tolist() == [[32769, 32770, 32765]]

    def test_clamps_out_of_range(self, encoder, caplog):
        """Values outside the uint16 range are clamped, not wrapped."""
        samples = np.array([[-40000.0, 40000.0, 100.0]])
        with caplog.at_level(logging.WARNING):
            raster = encoder.encode(samples)
        assert raster.data.tolist() == [[0, 65535, 32868]]
        assert raster.clamped_count == 2
        assert 'Clamped 2' in caplog.text

    def test_upper_bound_is_representable(self, encoder):
        raster = encoder.encode(np.array([[32767.0]]))
        assert raster.data.tolist() == [[65535]]
        assert raster.clamped_count == 0

    def test_non_finite_become_sea_level(self, encoder):
        raster = encoder.encode(np.array([[np.nan, np.inf, -np.inf]]))
        assert raster.data.tolist() == [[32768, 32768, 32768]]

    def test_shape_and_meters(self, encoder):
        samples = np.linspace(-100, 100, 12, dtype=np.float32).reshape(3, 4)
        raster = encoder.encode(samples)
        assert isinstance(raster, HeightRaster)
        assert (raster.height, raster.width) == (3, 4)
        np.testing.assert_allclose(raster.to_meters(), np.rint(samples), atol=0)

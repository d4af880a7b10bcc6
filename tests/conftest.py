"""Pytest configuration and fixtures for terrain pipeline tests."""

import sys
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))


def encode_terrarium(elevation: np.ndarray) -> np.ndarray:
    """Pack meters into an (H, W, 4) uint8 Terrarium array."""
    v = np.asarray(elevation, dtype=np.float64) + 32768.0
    r = np.floor(v / 256.0)
    g = np.floor(v - r * 256.0)
    b = np.floor((v - r * 256.0 - g) * 256.0)
    a = np.full(v.shape, 255.0)
    return np.stack([r, g, b, a], axis=-1).astype(np.uint8)


def make_png(
    elevation: float | np.ndarray = 0.0,
    *,
    size: int = 256,
    mode: str = 'RGBA',
) -> bytes:
    """PNG bytes of a tile with the given elevation (scalar or array)."""
    if np.isscalar(elevation):
        elevation = np.full((size, size), float(elevation))
    rgba = encode_terrarium(elevation)
    img = Image.fromarray(rgba)
    if mode != 'RGBA':
        img = img.convert(mode)
    buf = BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def tile_cache(tmp_path):
    from tiles.cache import ElevationTileCache

    return ElevationTileCache(tmp_path / 'cache')


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()

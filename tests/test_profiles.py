"""Tests for profiles module."""

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from domain.models import AreaRequest, BuildProfile, ElevationSettings, PaintLayer
from profiles import (
    _user_profiles_dir,
    ensure_profiles_dir,
    list_profiles,
    load_profile,
    profile_path,
    save_profile,
)
from shared.constants import ResampleMethod

PROFILE_TOML = """\
[area]
origin_lon = 13.4
origin_lat = 52.5
radius_m = 2500
layers = [{ name = "Grass" }, { name = "Rock" }]

[elevation]
zoom = 12
fetch_timeout_s = 5.0
resample = "nearest"
"""


def create_test_profile(**area_overrides):
    area = {'origin_lon': 13.4, 'origin_lat': 52.5, 'radius_m': 1000}
    area.update(area_overrides)
    return BuildProfile(area=AreaRequest(**area))


class TestUserProfilesDir:
    """Tests for _user_profiles_dir function."""

    def test_returns_path(self):
        """Should return a Path object."""
        assert isinstance(_user_profiles_dir(), Path)

    def test_ensure_creates_dir(self, tmp_path):
        target = tmp_path / 'profiles'
        with patch('profiles._user_profiles_dir', return_value=target):
            assert ensure_profiles_dir() == target
        assert target.is_dir()


class TestLoadProfile:
    """Tests for load_profile."""

    def test_load_from_path(self, tmp_path):
        path = tmp_path / 'berlin.toml'
        path.write_text(PROFILE_TOML, encoding='utf-8')

        profile = load_profile(path)

        assert profile.area.origin_lon == 13.4
        assert profile.area.radius_m == 2500
        assert [layer.name for layer in profile.area.layers] == ['Grass', 'Rock']
        assert profile.elevation.zoom == 12
        assert profile.elevation.fetch_timeout_s == 5.0
        assert profile.elevation.resample is ResampleMethod.NEAREST
        assert profile.elevation.cache_dir is None

    def test_elevation_table_optional(self, tmp_path):
        path = tmp_path / 'minimal.toml'
        path.write_text(
            '[area]\norigin_lon = 1.0\norigin_lat = 2.0\nradius_m = 3\n',
            encoding='utf-8',
        )
        assert load_profile(path).elevation == ElevationSettings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_profile(tmp_path / 'absent.toml')

    def test_invalid_values(self, tmp_path):
        path = tmp_path / 'bad.toml'
        path.write_text(
            '[area]\norigin_lon = 1.0\norigin_lat = 2.0\nradius_m = 0\n',
            encoding='utf-8',
        )
        with pytest.raises(ValidationError):
            load_profile(path)


class TestSaveProfile:
    """Tests for save_profile round trip."""

    def test_save_and_load(self, tmp_path):
        profile = BuildProfile(
            area=AreaRequest(
                origin_lon=-73.98,
                origin_lat=40.75,
                radius_m=800,
                layers=[PaintLayer(name='Sand')],
            ),
            elevation=ElevationSettings(cache_dir=tmp_path / 'tiles', zoom=14),
        )
        path = save_profile(tmp_path / 'nyc.toml', profile)

        loaded = load_profile(path)

        assert loaded == profile
        assert 'zoom = 14' in path.read_text(encoding='utf-8')

    def test_named_profiles(self, tmp_path):
        with patch('profiles._user_profiles_dir', return_value=tmp_path):
            save_profile('alpha', create_test_profile())
            save_profile('beta', create_test_profile(radius_m=5))

            assert list_profiles() == ['alpha', 'beta']
            assert profile_path('beta') == tmp_path / 'beta.toml'
            assert load_profile('beta').area.radius_m == 5

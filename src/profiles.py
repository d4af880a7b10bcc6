import logging
import os
from pathlib import Path

import tomlkit

from domain.models import BuildProfile
from shared.constants import APP_DIR_NAME, PROFILES_DIR

logger = logging.getLogger(__name__)


def _user_profiles_dir() -> Path:
    """
    Determine profiles directory.

    1) If <project_root>/configs/profiles exists, use it (run-from-repo setups).
    2) Otherwise, fall back to %APPDATA%/TerrariumTerrain/configs/profiles
       or ~/.config/TerrariumTerrain/configs/profiles when APPDATA is not set.
    """
    project_root = Path(__file__).resolve().parent.parent
    local_profiles = project_root / PROFILES_DIR
    if local_profiles.exists():
        return local_profiles

    base = os.getenv('APPDATA')
    root = Path(base) if base else Path.home() / '.config'
    return root / APP_DIR_NAME / PROFILES_DIR


def ensure_profiles_dir() -> Path:
    profiles_dir = _user_profiles_dir()
    profiles_dir.mkdir(parents=True, exist_ok=True)
    return profiles_dir


def list_profiles() -> list[str]:
    """Список имён профилей без расширения."""
    folder = ensure_profiles_dir()
    return sorted(p.stem for p in folder.glob('*.toml') if p.is_file())


def profile_path(name: str) -> Path:
    """Путь к файлу профиля по имени."""
    return ensure_profiles_dir() / f'{name}.toml'


def _resolve(name_or_path: str | Path) -> Path:
    p = Path(name_or_path)
    if p.suffix.lower() == '.toml':
        return p
    return profile_path(str(name_or_path))


def load_profile(name_or_path: str | Path) -> BuildProfile:
    """
    Загрузка и валидация профиля TOML -> BuildProfile.

    Поддерживает как имя профиля (без .toml) из каталога profiles,
    так и путь до TOML файла. Ожидаются таблицы [area] и [elevation].
    """
    path = _resolve(name_or_path)
    if not path.exists():
        msg = f'Профиль не найден: {path}'
        raise FileNotFoundError(msg)
    text = path.read_text(encoding='utf-8')
    data = tomlkit.parse(text).unwrap()
    profile = BuildProfile.model_validate(data)
    logger.info(
        'Profile %s loaded: lon=%s lat=%s radius=%sm',
        path.name,
        profile.area.origin_lon,
        profile.area.origin_lat,
        profile.area.radius_m,
    )
    return profile


def save_profile(name_or_path: str | Path, profile: BuildProfile) -> Path:
    """Сохранение профиля в TOML (без атомарности и бэкапов)."""
    path = _resolve(name_or_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = profile.model_dump(mode='json', exclude_none=True)
    text = tomlkit.dumps(data)
    path.write_text(text, encoding='utf-8')
    logger.info('Profile saved to %s', path)
    return path

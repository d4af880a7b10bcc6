"""Command line entry point: build a Terrarium height raster for an area."""

import argparse
import asyncio
import logging
import signal
import sys
import threading
from pathlib import Path

from PIL import Image
from pydantic import ValidationError

from domain.errors import BatchCancelledError, ElevationError
from domain.models import AreaRequest, BuildProfile, ElevationSettings, PaintLayer
from profiles import load_profile
from services.terrain_service import TerrainBuildResult, TerrainBuildService
from shared.diagnostics import log_comprehensive_diagnostics

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def setup_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure root logging: stderr plus an optional log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='terrarium-terrain',
        description='Сборка карты высот по тайлам Terrarium',
    )
    parser.add_argument('--profile', type=Path, help='TOML-профиль с [area] и [elevation]')
    parser.add_argument('--lon', type=float, help='Долгота центра, градусы')
    parser.add_argument('--lat', type=float, help='Широта центра, градусы')
    parser.add_argument('--radius', type=int, help='Радиус области, метры')
    parser.add_argument(
        '--layer',
        action='append',
        default=None,
        help='Имя слоя покраски (можно повторять; первый заливается полностью)',
    )
    parser.add_argument('--cache-dir', type=Path, help='Каталог кэша тайлов')
    parser.add_argument('--zoom', type=int, help='Уровень масштаба (по умолчанию максимальный)')
    parser.add_argument('--timeout', type=float, help='Тайм-аут загрузки тайла, секунды')
    parser.add_argument(
        '--output',
        type=Path,
        default=Path('heightmap.png'),
        help='Выходной 16-битный PNG',
    )
    parser.add_argument('--verbose', action='store_true', help='Подробный лог')
    parser.add_argument('--log-file', type=Path, help='Дополнительно писать лог в файл')
    return parser


def resolve_profile(args: argparse.Namespace) -> BuildProfile:
    """Merge the optional TOML profile with command line overrides.

    Raises:
        ValueError: no area was given.
        ValidationError: values are out of range.
    """
    if args.profile is not None:
        profile = load_profile(args.profile)
        area = profile.area.model_dump()
        elevation = profile.elevation.model_dump()
    else:
        area = {}
        elevation = {}

    for key, value in (
        ('origin_lon', args.lon),
        ('origin_lat', args.lat),
        ('radius_m', args.radius),
    ):
        if value is not None:
            area[key] = value
    if args.layer:
        area['layers'] = [PaintLayer(name=name) for name in args.layer]
    missing = [k for k in ('origin_lon', 'origin_lat', 'radius_m') if k not in area]
    if missing:
        msg = '--lon, --lat and --radius (or --profile) are required'
        raise ValueError(msg)

    for key, value in (
        ('cache_dir', args.cache_dir),
        ('zoom', args.zoom),
        ('fetch_timeout_s', args.timeout),
    ):
        if value is not None:
            elevation[key] = value

    return BuildProfile(
        area=AreaRequest.model_validate(area),
        elevation=ElevationSettings.model_validate(elevation),
    )


def save_result(result: TerrainBuildResult, output: Path) -> list[Path]:
    """Write the height raster and one PNG per paint layer next to it."""
    output.parent.mkdir(parents=True, exist_ok=True)
    written = [output]
    # uint16 arrays become 16-bit grayscale ('I;16') images
    Image.fromarray(result.height_raster.data).save(output, format='PNG')
    for name, weights in result.layer_weights.items():
        path = output.with_name(f'{output.stem}_{name}.png')
        Image.fromarray(weights).save(path, format='PNG')
        written.append(path)
    return written


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        profile = resolve_profile(args)
    except (ValueError, ValidationError, FileNotFoundError) as e:
        print(f'Ошибка параметров: {e}', file=sys.stderr)
        return EXIT_USAGE

    cancel_event = threading.Event()

    def _on_sigint(signum, frame) -> None:
        logger.warning('Interrupt received, cancelling download')
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    service = TerrainBuildService(profile.elevation, show_progress=True)
    try:
        result = asyncio.run(service.build(profile.area, cancel_event.is_set))
    except BatchCancelledError:
        print('Загрузка отменена пользователем', file=sys.stderr)
        return EXIT_CANCELLED
    except ElevationError as e:
        logger.debug('Build failed', exc_info=True)
        print(f'Ошибка: {e}', file=sys.stderr)
        log_comprehensive_diagnostics('BUILD_FAILED')
        return EXIT_FAILED
    finally:
        signal.signal(signal.SIGINT, previous)

    try:
        written = save_result(result, args.output)
    except OSError as e:
        print(f'Не удалось сохранить результат: {e}', file=sys.stderr)
        return EXIT_FAILED

    for path in written:
        logger.info('Saved %s', path)
    if result.height_raster.clamped_count:
        logger.warning(
            '%d samples were clamped to the raster range',
            result.height_raster.clamped_count,
        )
    return EXIT_OK


def cli() -> None:
    sys.exit(main())


if __name__ == '__main__':
    cli()

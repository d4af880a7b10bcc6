from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import ssl
from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING

import aiohttp
import certifi

from domain.errors import TileNetworkError
from shared.constants import (
    APP_DIR_NAME,
    ELEVATION_CACHE_DIR,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    TILE_FETCH_TIMEOUT_S,
)

if TYPE_CHECKING:
    from domain.models import TileCoordinate

logger = logging.getLogger(__name__)


def resolve_cache_dir(configured: str | Path | None = None) -> Path:
    """Directory for cached elevation tiles.

    An explicitly configured path wins; a relative default is placed under
    LOCALAPPDATA when it is set, otherwise under the user's home directory.
    """
    if configured is not None:
        return Path(configured).expanduser().resolve()

    raw_dir = Path(ELEVATION_CACHE_DIR)
    if raw_dir.is_absolute():
        return raw_dir

    local = os.getenv('LOCALAPPDATA')
    if local:
        return (Path(local) / APP_DIR_NAME / raw_dir).resolve()
    # Fallback: user's home directory
    return (Path.home() / '.terrarium_terrain_cache' / 'elevation').resolve()


def make_http_session() -> aiohttp.ClientSession:
    # SSL-контекст с сертификатами из certifi
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)
    return aiohttp.ClientSession(connector=connector)


async def fetch_tile_bytes(
    client: aiohttp.ClientSession,
    url: str,
    coordinate: TileCoordinate,
    *,
    async_timeout: float = TILE_FETCH_TIMEOUT_S,
    retries: int = HTTP_RETRIES_DEFAULT,
    backoff: float = HTTP_BACKOFF_FACTOR,
) -> bytes:
    """
    Download one tile and return the raw response body.

    401/403/404 fail immediately; other statuses and connection errors are
    retried up to `retries` attempts in total.

    Raises:
        TileNetworkError: when no attempt succeeded.
    """
    last_exc: Exception | None = None
    for attempt in range(max(1, retries)):
        if attempt:
            await asyncio.sleep(backoff**attempt)
        try:
            timeout = aiohttp.ClientTimeout(total=async_timeout)
            resp = await client.get(url, timeout=timeout)
            try:
                sc = resp.status
                if sc == HTTPStatus.OK:
                    return await resp.read()
                if sc in (
                    HTTPStatus.UNAUTHORIZED,
                    HTTPStatus.FORBIDDEN,
                    HTTPStatus.NOT_FOUND,
                ):
                    raise TileNetworkError(coordinate, f'HTTP {sc} for {url}')
                last_exc = TileNetworkError(coordinate, f'unexpected HTTP {sc} for {url}')
            finally:
                with contextlib.suppress(Exception):
                    release = getattr(resp, 'release', None)
                    if callable(release):
                        release()
        except TileNetworkError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            last_exc = e
            logger.debug('Attempt %d for %s failed: %s', attempt + 1, coordinate, e)
    if isinstance(last_exc, TileNetworkError):
        raise last_exc
    raise TileNetworkError(coordinate, f'connection failure: {last_exc}')

"""Versioned go-cqhttp installation."""

import asyncio
import contextlib
import os
from collections import Counter
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Union

import aiohttp

from qsign.archives import select_archive
from qsign.errors import DownloadError, ExecutablePermissionError, ExtractionError
from qsign.logging import get_logger
from qsign.platforms import (
    DEFAULT_STRATEGY,
    NamingStrategy,
    build_download_url,
    compute_binary_path,
    get_platform_info,
    validate_source,
    validate_version,
)
from qsign.types import PlatformInfo

logger = get_logger(__name__)

CHUNK_SIZE = 64 * 1024

# One lock per install target so concurrent startups in a process don't race.
# Entries are dropped once no install holds or waits on them.
_INSTALL_LOCKS: Dict[Path, asyncio.Lock] = {}
_LOCK_USERS: Counter = Counter()


@contextlib.asynccontextmanager
async def _install_lock(binary_path: Path):
    lock = _INSTALL_LOCKS.setdefault(binary_path, asyncio.Lock())
    _LOCK_USERS[binary_path] += 1
    try:
        async with lock:
            yield
    finally:
        _LOCK_USERS[binary_path] -= 1
        if _LOCK_USERS[binary_path] <= 0:
            del _LOCK_USERS[binary_path]
            _INSTALL_LOCKS.pop(binary_path, None)


async def _iter_body(response: aiohttp.ClientResponse, url: str) -> AsyncIterator[bytes]:
    received = 0
    try:
        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
            received += len(chunk)
            yield chunk
    except aiohttp.ClientError as e:
        logger.error("download_interrupted", url=url, received=received, error=str(e))
        raise DownloadError(url, reason=str(e)) from e
    except asyncio.TimeoutError as e:
        logger.error("download_timed_out", url=url, received=received)
        raise DownloadError(url, reason="timed out") from e

    logger.info(
        "download_complete",
        url=url,
        size=received,
        expected_size=response.content_length,
    )


async def download_archive(
    session: aiohttp.ClientSession,
    url: str,
    dest_dir: Path,
    filename: str,
) -> None:
    """Stream a release archive from url and unpack it into dest_dir."""
    archive = select_archive(filename)
    archive_path = dest_dir / filename

    if archive_path.exists():
        logger.warning("discarding_stale_archive", path=str(archive_path))
        archive_path.unlink()

    logger.info("download_started", url=url, destination=str(dest_dir))

    try:
        async with session.get(url) as response:
            if response.status < 200 or response.status >= 300:
                logger.error(
                    "download_request_failed",
                    url=url,
                    status=response.status,
                    reason=response.reason,
                )
                raise DownloadError(url, status=response.status, reason=response.reason)

            await archive.extract_into(_iter_body(response, url), dest_dir, archive_path)
    except aiohttp.ClientError as e:
        logger.error("download_failed", url=url, error=str(e))
        raise DownloadError(url, reason=str(e)) from e
    except asyncio.TimeoutError as e:
        logger.error("download_timed_out", url=url)
        raise DownloadError(url, reason="timed out") from e


def make_executable(binary_path: Path) -> None:
    try:
        binary_path.chmod(0o755)
    except OSError as e:
        error = ExecutablePermissionError(str(binary_path), str(e))
        logger.warning("chmod_failed", path=str(binary_path), error=str(error))


async def ensure_installed(
    version: str,
    source: str,
    cache_root: Union[str, Path],
    *,
    platform_info: Optional[PlatformInfo] = None,
    strategy: NamingStrategy = DEFAULT_STRATEGY,
    session: Optional[aiohttp.ClientSession] = None,
) -> Path:
    """Ensure the binary for a version is installed.

    Args:
        version: Release tag, used verbatim in the URL and cache path
        source: Base URL of the release host
        cache_root: Directory holding one subdirectory per version
        platform_info: Target platform (detected from the host if None)
        strategy: Archive and binary naming for the release host
        session: HTTP session to use (a new one is created if None)

    Returns:
        Path to the installed binary

    Raises:
        InvalidConfigError: If version or source is empty or malformed
        UnsupportedPlatformError: If the OS has no release artifact
        UnsupportedArchitectureError: If the CPU has no release artifact
        DownloadError: If the archive cannot be fetched
        ExtractionError: If the archive is corrupt or lacks the binary
    """
    validate_version(version)
    validate_source(source)
    info = platform_info or get_platform_info()

    binary_path = compute_binary_path(cache_root, version, info.platform, strategy, info.arch)
    if binary_path.exists():
        logger.debug("using_installed_binary", version=version, path=str(binary_path))
        return binary_path

    async with _install_lock(binary_path):
        if binary_path.exists():
            return binary_path

        filename = strategy.archive_filename(info)
        url = build_download_url(source, version, filename)
        version_dir = binary_path.parent
        version_dir.mkdir(parents=True, exist_ok=True)

        if session is None:
            async with aiohttp.ClientSession() as own_session:
                await download_archive(own_session, url, version_dir, filename)
        else:
            await download_archive(session, url, version_dir, filename)

        if not binary_path.exists():
            logger.error(
                "binary_not_found",
                version=version,
                expected=str(binary_path),
                available=sorted(os.listdir(version_dir)),
            )
            raise ExtractionError(
                f"Archive {filename} does not contain {binary_path.name}",
                details={"archive": filename, "binary": binary_path.name},
            )

        if not info.is_windows:
            make_executable(binary_path)

        logger.info("binary_ready", version=version, path=str(binary_path))
        return binary_path

"""Provision and launch version-pinned go-cqhttp binaries."""

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from qsign.config import (
    DEFAULT_SOURCE,
    DEFAULT_SOURCE_STRATEGY,
    Config,
    as_config,
    default_cache_root,
)
from qsign.errors import (
    DownloadError,
    ExecutablePermissionError,
    ExtractionError,
    InvalidConfigError,
    QSignError,
    UnsupportedArchitectureError,
    UnsupportedPlatformError,
    log_error,
)
from qsign.launcher import launch
from qsign.logging import get_logger
from qsign.platforms import (
    DEFAULT_STRATEGY,
    GITEE_ZIP_STRATEGY,
    NamingStrategy,
    compute_binary_path,
    get_platform_info,
)
from qsign.provisioner import ensure_installed
from qsign.types import Arch, LaunchOptions, Platform, PlatformInfo

name = "qsign"
logger = get_logger(name)


async def apply(config: Union[Config, Mapping[str, Any]]) -> Path:
    """Host entry point: make sure the configured version is installed."""
    config = as_config(config)

    logger.info("installing", version=config.version, source=config.source)
    try:
        binary = await ensure_installed(
            config.version,
            config.source,
            config.cache_root,
            strategy=config.strategy,
        )
    except Exception as e:
        log_error(e, {"version": config.version, "source": config.source}, logger)
        raise

    logger.info("environment_ready", version=config.version, path=str(binary))
    return binary


def get_binary_path(
    version: str,
    cache_root: Optional[Union[str, Path]] = None,
    strategy: NamingStrategy = DEFAULT_SOURCE_STRATEGY,
) -> Path:
    """Install location of a version for the running host."""
    info = get_platform_info()
    return compute_binary_path(
        default_cache_root() if cache_root is None else cache_root,
        version,
        info.platform,
        strategy,
        info.arch,
    )


__all__ = [
    "apply",
    "get_binary_path",
    "ensure_installed",
    "launch",
    "Config",
    "DEFAULT_SOURCE",
    "DEFAULT_STRATEGY",
    "GITEE_ZIP_STRATEGY",
    "NamingStrategy",
    "LaunchOptions",
    "Platform",
    "Arch",
    "PlatformInfo",
    "QSignError",
    "InvalidConfigError",
    "UnsupportedPlatformError",
    "UnsupportedArchitectureError",
    "DownloadError",
    "ExtractionError",
    "ExecutablePermissionError",
]

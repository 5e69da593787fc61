"""go-cqhttp process launch."""

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from qsign.logging import get_logger
from qsign.platforms import DEFAULT_STRATEGY, NamingStrategy, compute_binary_path, get_platform_info
from qsign.types import LaunchOptions, PlatformInfo

logger = get_logger(__name__)

FORCED_ENV = {"FORCE_TTY": "1"}


def build_args(options: LaunchOptions) -> List[str]:
    args: List[str] = []
    if options.faststart:
        args.append("-faststart")
    return args


def build_env(
    base_env: Mapping[str, str], overrides: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Child environment: base snapshot, then FORCE_TTY, then caller overrides."""
    return {**base_env, **FORCED_ENV, **(overrides or {})}


async def launch(
    version: str,
    options: Optional[LaunchOptions] = None,
    *,
    cache_root: Union[str, Path],
    platform_info: Optional[PlatformInfo] = None,
    strategy: NamingStrategy = DEFAULT_STRATEGY,
    base_env: Optional[Mapping[str, str]] = None,
) -> asyncio.subprocess.Process:
    """Start the installed binary for a version and return without waiting.

    The binary is not checked for existence; spawning a missing binary raises
    the OS error from process creation.
    """
    options = options or LaunchOptions()
    info = platform_info or get_platform_info()
    binary = compute_binary_path(cache_root, version, info.platform, strategy, info.arch)

    spawn_options = dict(options.spawn_options)
    # env given with the spawn options sits under LaunchOptions.env
    overrides = {**(spawn_options.pop("env", None) or {}), **options.env}

    args = build_args(options)
    env = build_env(dict(os.environ) if base_env is None else base_env, overrides)

    if options.cwd is not None:
        spawn_options["cwd"] = options.cwd

    logger.info("launching_binary", version=version, binary=str(binary), args=args)

    process = await asyncio.create_subprocess_exec(
        str(binary),
        *args,
        env=env,
        **spawn_options,
    )

    logger.debug("binary_started", version=version, pid=process.pid)
    return process

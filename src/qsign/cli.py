"""Command line entry point."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from qsign import apply
from qsign.config import DEFAULT_SOURCE, DEFAULT_SOURCE_STRATEGY, Config, default_cache_root
from qsign.errors import QSignError
from qsign.launcher import launch
from qsign.logging import configure_logging, get_logger
from qsign.platforms import STRATEGIES
from qsign.types import LaunchOptions

logger = get_logger("cli")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qsign",
        description="Install a go-cqhttp release and optionally run it",
    )
    parser.add_argument("--version", required=True, help="Release tag to install, e.g. v31")
    parser.add_argument("--source", default=DEFAULT_SOURCE, help="Base URL of the release host")
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default=None,
        help="Archive naming used by the release host (default: gitee)",
    )
    parser.add_argument(
        "--cache-root",
        type=Path,
        default=None,
        help=f"Install directory (default: {default_cache_root()})",
    )
    parser.add_argument("--launch", action="store_true", help="Start the binary after installing")
    parser.add_argument("--faststart", action="store_true", help="Pass -faststart to the binary")
    parser.add_argument("--cwd", type=Path, default=None, help="Working directory for the binary")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    config = Config(
        version=args.version,
        source=args.source,
        strategy=STRATEGIES[args.strategy] if args.strategy else DEFAULT_SOURCE_STRATEGY,
        cache_root=args.cache_root or default_cache_root(),
        launch=LaunchOptions(faststart=args.faststart, cwd=args.cwd),
    )
    await apply(config)
    if not args.launch:
        return 0

    process = await launch(
        config.version,
        config.launch,
        cache_root=config.cache_root,
        strategy=config.strategy,
    )
    return await process.wait()


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(run(args))
    except QSignError as e:
        logger.error("qsign_failed", error=str(e), details=e.details)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())

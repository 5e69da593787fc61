"""Host-supplied configuration."""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Union

import appdirs

from qsign.errors import InvalidConfigError
from qsign.platforms import (
    GITEE_ZIP_STRATEGY,
    STRATEGIES,
    NamingStrategy,
    validate_source,
    validate_version,
)
from qsign.types import LaunchOptions

DEFAULT_SOURCE = "https://gitee.com/initencunter/go-cqhttp-dev/releases/download"
# Naming used by the archives published at DEFAULT_SOURCE
DEFAULT_SOURCE_STRATEGY = GITEE_ZIP_STRATEGY
APP_NAME = "gocqhttp"


def default_cache_root() -> Path:
    return Path(appdirs.user_data_dir(APP_NAME))


@dataclass(frozen=True)
class Config:
    """Plugin configuration"""
    version: str
    source: str = DEFAULT_SOURCE
    cache_root: Path = field(default_factory=default_cache_root)
    strategy: NamingStrategy = DEFAULT_SOURCE_STRATEGY
    launch: LaunchOptions = field(default_factory=LaunchOptions)

    def __post_init__(self):
        if not isinstance(self.version, str):
            raise InvalidConfigError(f"version must be a string, got {type(self.version).__name__}")
        validate_version(self.version)
        validate_source(self.source)
        object.__setattr__(self, "cache_root", Path(self.cache_root))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Config":
        """Build a config from the host's plain mapping.

        Launch options may be given flat (``faststart``, ``env``, ``cwd``);
        ``strategy`` is a name from ``STRATEGIES``.
        """
        launch_keys = {f.name for f in fields(LaunchOptions)}
        config_keys = {"version", "source", "cache_root", "strategy"}

        unknown = set(data) - launch_keys - config_keys
        if unknown:
            raise InvalidConfigError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}",
                details={"keys": sorted(unknown)},
            )
        if data.get("version") is None:
            raise InvalidConfigError("version is required")

        kwargs = {k: data[k] for k in config_keys if k in data and data[k] is not None}
        if "strategy" in kwargs:
            kwargs["strategy"] = _lookup_strategy(kwargs["strategy"])
        launch = {k: data[k] for k in launch_keys if k in data}
        if "cwd" in launch and launch["cwd"] is not None:
            launch["cwd"] = Path(launch["cwd"])
        return cls(launch=LaunchOptions(**launch), **kwargs)


def _lookup_strategy(strategy: Union[str, NamingStrategy]) -> NamingStrategy:
    if isinstance(strategy, NamingStrategy):
        return strategy
    try:
        return STRATEGIES[strategy]
    except (KeyError, TypeError):
        raise InvalidConfigError(
            f"Unknown naming strategy: {strategy!r}",
            details={"strategy": strategy, "known": sorted(STRATEGIES)},
        ) from None


def as_config(config: Union[Config, Mapping[str, Any]]) -> Config:
    if isinstance(config, Config):
        return config
    return Config.from_mapping(config)

"""Core type definitions"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class Platform(Enum):
    """Operating system token used in release artifact names."""
    DARWIN = "darwin"
    LINUX = "linux"
    WINDOWS = "windows"


class Arch(Enum):
    """CPU architecture token used in release artifact names."""
    I386 = "386"
    AMD64 = "amd64"
    ARM64 = "arm64"
    ARM = "arm"


class ArchiveFormat(Enum):
    ZIP = "zip"
    TAR_GZ = "tar.gz"


@dataclass(frozen=True)
class PlatformInfo:
    """Resolved platform/arch pair"""
    platform: Platform
    arch: Arch

    @property
    def is_windows(self) -> bool:
        return self.platform is Platform.WINDOWS


@dataclass(frozen=True)
class LaunchOptions:
    """Process spawn configuration for a single launch"""
    env: Dict[str, str] = field(default_factory=dict)
    faststart: bool = False
    cwd: Optional[Path] = None
    spawn_options: Dict[str, Any] = field(default_factory=dict)

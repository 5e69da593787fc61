"""Platform detection and release artifact naming."""
import platform as _platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Union
from urllib.parse import urlsplit

from qsign.errors import (
    InvalidConfigError,
    UnsupportedArchitectureError,
    UnsupportedPlatformError,
)
from qsign.types import Arch, ArchiveFormat, Platform, PlatformInfo

# OS identifiers as reported by sys.platform, plus platform.system() for Windows
PLATFORM_MAPPINGS: Dict[str, Platform] = {
    "darwin": Platform.DARWIN,
    "linux": Platform.LINUX,
    "win32": Platform.WINDOWS,
    "windows": Platform.WINDOWS,
}

# CPU identifiers as reported by platform.machine() and node's process.arch
ARCH_MAPPINGS: Dict[str, Arch] = {
    "ia32": Arch.I386,
    "i386": Arch.I386,
    "i686": Arch.I386,
    "x86": Arch.I386,
    "x64": Arch.AMD64,
    "x86_64": Arch.AMD64,
    "amd64": Arch.AMD64,
    "arm64": Arch.ARM64,
    "aarch64": Arch.ARM64,
    "arm": Arch.ARM,
    "armv6l": Arch.ARM,
    "armv7l": Arch.ARM,
}


def resolve_platform(os_id: Optional[str] = None) -> Platform:
    """Map an operating system identifier to its release token."""
    if os_id is None:
        os_id = sys.platform
    try:
        return PLATFORM_MAPPINGS[os_id.lower()]
    except KeyError:
        raise UnsupportedPlatformError(os_id) from None


def resolve_arch(arch_id: Optional[str] = None) -> Arch:
    """Map a CPU architecture identifier to its release token."""
    if arch_id is None:
        arch_id = _platform.machine()
    try:
        return ARCH_MAPPINGS[arch_id.lower()]
    except KeyError:
        raise UnsupportedArchitectureError(arch_id) from None


def get_platform_info(
    os_id: Optional[str] = None, arch_id: Optional[str] = None
) -> PlatformInfo:
    """Get current platform information."""
    return PlatformInfo(platform=resolve_platform(os_id), arch=resolve_arch(arch_id))


def default_archive_format(platform: Platform) -> ArchiveFormat:
    return ArchiveFormat.ZIP if platform is Platform.WINDOWS else ArchiveFormat.TAR_GZ


def always_zip(platform: Platform) -> ArchiveFormat:
    return ArchiveFormat.ZIP


@dataclass(frozen=True)
class NamingStrategy:
    """How a release names its archives and the binary inside them.

    ``archive_template`` is formatted with ``platform``, ``arch`` and ``ext``;
    ``binary_template`` with ``platform`` and ``arch``.
    """

    binary_template: str = "go-cqhttp"
    archive_template: str = "go-cqhttp-{platform}-{arch}.{ext}"
    select_format: Callable[[Platform], ArchiveFormat] = default_archive_format

    def binary_filename(self, platform: Platform, arch: Optional[Arch] = None) -> str:
        values = {"platform": platform.value}
        if arch is not None:
            values["arch"] = arch.value
        try:
            name = self.binary_template.format(**values)
        except KeyError as e:
            raise InvalidConfigError(
                f"binary template {self.binary_template!r} needs {e.args[0]}",
                details={"template": self.binary_template},
            ) from None
        if platform is Platform.WINDOWS:
            return f"{name}.exe"
        return name

    def archive_format(self, platform: Platform) -> ArchiveFormat:
        return self.select_format(platform)

    def archive_filename(self, info: PlatformInfo) -> str:
        return self.archive_template.format(
            platform=info.platform.value,
            arch=info.arch.value,
            ext=self.archive_format(info.platform).value,
        )


DEFAULT_STRATEGY = NamingStrategy()

# Layout of the gitee mirror: https://gitee.com/.../download/v31/darwin_arm64.zip
# holding go-cqhttp_darwin_arm64
GITEE_ZIP_STRATEGY = NamingStrategy(
    binary_template="go-cqhttp_{platform}_{arch}",
    archive_template="{platform}_{arch}.{ext}",
    select_format=always_zip,
)

STRATEGIES: Dict[str, NamingStrategy] = {
    "default": DEFAULT_STRATEGY,
    "gitee": GITEE_ZIP_STRATEGY,
}


def compute_binary_path(
    cache_root: Union[str, Path],
    version: str,
    platform: Platform,
    strategy: NamingStrategy = DEFAULT_STRATEGY,
    arch: Optional[Arch] = None,
) -> Path:
    """Location of the installed binary for a version; performs no I/O.

    ``arch`` is only needed when the strategy's binary name contains it.
    """
    return Path(cache_root) / version / strategy.binary_filename(platform, arch)


def validate_version(version: str) -> str:
    if not version or not version.strip():
        raise InvalidConfigError("version must be a non-empty release tag")
    if "/" in version or "\\" in version or version in (".", ".."):
        raise InvalidConfigError(
            f"version must not contain path separators: {version!r}",
            details={"version": version},
        )
    return version


def validate_source(source: str) -> str:
    if not source:
        raise InvalidConfigError("source must be a non-empty http(s) URL")
    parts = urlsplit(source)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidConfigError(
            f"source must be an http(s) URL: {source!r}",
            details={"source": source},
        )
    return source


def build_download_url(source: str, version: str, filename: str) -> str:
    """Build ``<source>/<version>/<filename>``."""
    validate_source(source)
    validate_version(version)
    return f"{source.rstrip('/')}/{version}/{filename}"

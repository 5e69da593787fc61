import io
import tarfile
import zipfile
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog

from qsign.types import Arch, Platform, PlatformInfo


class FakeContent:
    """Stand-in for aiohttp's StreamReader"""

    def __init__(self, data: bytes, error: Optional[Exception] = None):
        self.data = data
        self.error = error

    async def iter_chunked(self, size: int):
        for i in range(0, len(self.data), size):
            yield self.data[i:i + size]
        if self.error is not None:
            raise self.error


def build_session(status: int = 200, body: bytes = b"", error: Optional[Exception] = None):
    response = MagicMock()
    response.status = status
    response.reason = {200: "OK", 404: "Not Found"}.get(status, "Server Error")
    response.content = FakeContent(body, error)
    response.content_length = len(body)

    request_ctx = MagicMock()
    request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=request_ctx)
    return session


def build_zip(members: Dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buf.getvalue()


def build_targz(members: Dict[str, bytes], mode: int = 0o644) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = mode
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def cache_root(tmp_path):
    return tmp_path / "gocqhttp"


@pytest.fixture
def linux_amd64():
    return PlatformInfo(platform=Platform.LINUX, arch=Arch.AMD64)


@pytest.fixture
def windows_amd64():
    return PlatformInfo(platform=Platform.WINDOWS, arch=Arch.AMD64)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()

"""Tests for archive extraction."""
import os

import pytest

from conftest import build_targz, build_zip
from qsign.archives import (
    TarGzArchive,
    ZipArchive,
    promote_staged,
    select_archive,
)
from qsign.errors import DownloadError, ExtractionError


async def chunked(data: bytes, size: int = 1024, error: Exception = None):
    for i in range(0, len(data), size):
        yield data[i:i + size]
    if error is not None:
        raise error


def leftovers(path):
    return [p.name for p in path.iterdir() if p.name.startswith(".extract-")]


@pytest.mark.parametrize(
    "filename,handler",
    [
        ("go-cqhttp-windows-amd64.zip", ZipArchive),
        ("go-cqhttp-linux-amd64.tar.gz", TarGzArchive),
        ("darwin_arm64.zip", ZipArchive),
        ("go-cqhttp.tgz", TarGzArchive),
        ("go-cqhttp-v1.2.zip", ZipArchive),
    ],
)
def test_select_archive(filename, handler):
    assert isinstance(select_archive(filename), handler)


def test_select_archive_unsupported():
    with pytest.raises(ExtractionError, match="Unsupported archive format"):
        select_archive("go-cqhttp-linux-amd64.7z")


def test_promote_staged_overwrites(tmp_path):
    staging = tmp_path / "staging"
    staging.mkdir()
    (staging / "go-cqhttp").write_bytes(b"new")
    (staging / "docs").mkdir()
    (staging / "docs" / "README").write_text("new docs")

    (tmp_path / "go-cqhttp").write_bytes(b"old")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "stale").write_text("old docs")

    promote_staged(staging, tmp_path)

    assert (tmp_path / "go-cqhttp").read_bytes() == b"new"
    assert (tmp_path / "docs" / "README").read_text() == "new docs"
    assert not (tmp_path / "docs" / "stale").exists()
    assert list(staging.iterdir()) == []


@pytest.mark.asyncio
async def test_zip_extract_into(tmp_path):
    archive_path = tmp_path / "go-cqhttp-windows-amd64.zip"
    data = build_zip({"go-cqhttp.exe": b"binary", "LICENSE": b"license"})

    await ZipArchive().extract_into(chunked(data), tmp_path, archive_path)

    assert (tmp_path / "go-cqhttp.exe").read_bytes() == b"binary"
    assert (tmp_path / "LICENSE").read_bytes() == b"license"
    assert not archive_path.exists()
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_zip_extract_into_corrupt(tmp_path):
    archive_path = tmp_path / "go-cqhttp-windows-amd64.zip"

    with pytest.raises(ExtractionError):
        await ZipArchive().extract_into(chunked(b"not a zip file"), tmp_path, archive_path)

    assert not archive_path.exists()
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_zip_extract_into_interrupted(tmp_path):
    archive_path = tmp_path / "go-cqhttp-windows-amd64.zip"
    data = build_zip({"go-cqhttp.exe": os.urandom(4096)})
    error = DownloadError("https://example.com/a.zip", reason="connection reset")

    with pytest.raises(DownloadError):
        await ZipArchive().extract_into(chunked(data[:100], error=error), tmp_path, archive_path)

    assert not archive_path.exists()
    assert not (tmp_path / "go-cqhttp.exe").exists()


@pytest.mark.asyncio
async def test_targz_extract_into(tmp_path):
    payload = os.urandom(512 * 1024)
    data = build_targz({"go-cqhttp": payload, "config.yml": b"servers: []"})

    await TarGzArchive().extract_into(chunked(data, size=8192), tmp_path, tmp_path / "unused.tar.gz")

    assert (tmp_path / "go-cqhttp").read_bytes() == payload
    assert (tmp_path / "config.yml").read_bytes() == b"servers: []"
    assert not (tmp_path / "unused.tar.gz").exists()
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_targz_extract_into_corrupt(tmp_path):
    with pytest.raises(ExtractionError):
        await TarGzArchive().extract_into(chunked(b"\x00" * 4096), tmp_path, tmp_path / "a.tar.gz")

    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_targz_extract_into_interrupted(tmp_path):
    data = build_targz({"go-cqhttp": os.urandom(256 * 1024)})
    error = DownloadError("https://example.com/a.tar.gz", reason="connection reset")

    with pytest.raises(DownloadError):
        await TarGzArchive().extract_into(
            chunked(data[: len(data) // 2], error=error), tmp_path, tmp_path / "a.tar.gz"
        )

    assert not (tmp_path / "go-cqhttp").exists()
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_targz_rejects_path_traversal(tmp_path):
    dest = tmp_path / "v1"
    dest.mkdir()
    data = build_targz({"../evil": b"payload"})

    with pytest.raises(ExtractionError):
        await TarGzArchive().extract_into(chunked(data), dest, dest / "a.tar.gz")

    assert not (tmp_path / "evil").exists()

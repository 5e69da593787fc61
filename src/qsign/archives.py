"""Release archive extraction.

Each archive kind consumes the downloaded byte stream and unpacks it into a
version directory. Members are first unpacked into a staging directory next to
the destination and only moved into place once the whole archive has been read,
so an interrupted download never leaves a half-written binary behind.
"""
import asyncio
import contextlib
import os
import shutil
import tarfile
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Union

from qsign.errors import ExtractionError
from qsign.logging import get_logger
from qsign.types import ArchiveFormat

logger = get_logger(__name__)

ChunkStream = AsyncIterator[bytes]


def make_staging_dir(dest_dir: Path) -> Path:
    return Path(tempfile.mkdtemp(prefix=".extract-", dir=dest_dir))


def promote_staged(staging: Path, dest_dir: Path) -> None:
    """Move everything from staging into dest_dir, replacing existing entries."""
    for item in staging.iterdir():
        target = dest_dir / item.name
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        os.replace(item, target)


def extract_zip(archive_path: Path, dest_dir: Path) -> None:
    try:
        with zipfile.ZipFile(archive_path) as archive:
            archive.extractall(dest_dir)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise ExtractionError(
            f"Failed to extract {archive_path.name}: {e}",
            details={"archive": str(archive_path), "format": "zip"},
        ) from e


def extract_tar_stream(reader: BinaryIO, dest_dir: Path) -> None:
    """Unpack a gzip tar stream sequentially from a file object."""
    with reader:
        try:
            with tarfile.open(fileobj=reader, mode="r|gz") as archive:
                archive.extractall(dest_dir, filter="data")
        except (tarfile.TarError, EOFError, zlib.error) as e:
            raise ExtractionError(
                f"Failed to extract tar.gz stream: {e}",
                details={"dest": str(dest_dir), "format": "tar.gz"},
            ) from e


async def feed_pipe(chunks: ChunkStream, writer: BinaryIO) -> int:
    """Write chunks into a pipe, blocking off the event loop while it is full."""
    written = 0
    try:
        async for chunk in chunks:
            await asyncio.to_thread(writer.write, chunk)
            written += len(chunk)
    except BrokenPipeError:
        # reader is gone; the extractor reports why
        logger.debug("extract_pipe_closed", written=written)
    finally:
        with contextlib.suppress(BrokenPipeError):
            writer.close()
    return written


class ZipArchive:
    """Zip archive: saved to disk in full, then extracted and removed."""

    format = ArchiveFormat.ZIP

    async def extract_into(
        self, chunks: ChunkStream, dest_dir: Path, archive_path: Path
    ) -> None:
        try:
            with open(archive_path, "wb") as f:
                async for chunk in chunks:
                    f.write(chunk)
        except BaseException:
            archive_path.unlink(missing_ok=True)
            raise

        staging = make_staging_dir(dest_dir)
        try:
            await asyncio.to_thread(extract_zip, archive_path, staging)
            promote_staged(staging, dest_dir)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
            archive_path.unlink(missing_ok=True)

        logger.info(
            "archive_extracted",
            archive=str(archive_path),
            extracted_to=str(dest_dir),
        )


class TarGzArchive:
    """Gzip tar archive: streamed through the extractor without a temp file."""

    format = ArchiveFormat.TAR_GZ

    async def extract_into(
        self, chunks: ChunkStream, dest_dir: Path, archive_path: Path
    ) -> None:
        staging = make_staging_dir(dest_dir)
        try:
            read_fd, write_fd = os.pipe()
            extraction = asyncio.ensure_future(
                asyncio.to_thread(extract_tar_stream, open(read_fd, "rb"), staging)
            )
            try:
                await feed_pipe(chunks, open(write_fd, "wb"))
            except BaseException:
                # writer is closed, so the extractor hits EOF and finishes
                try:
                    await extraction
                except ExtractionError as e:
                    logger.debug("extract_aborted", error=str(e))
                raise
            await extraction
            promote_staged(staging, dest_dir)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("archive_extracted", extracted_to=str(dest_dir), streamed=True)


Archive = Union[ZipArchive, TarGzArchive]

ARCHIVE_HANDLERS = {
    ".zip": ZipArchive,
    ".tar.gz": TarGzArchive,
    ".tgz": TarGzArchive,
}


def select_archive(filename: str) -> Archive:
    """Pick the archive handler from a file name's extension."""
    path = Path(filename)
    format = "".join(path.suffixes[-2:]) if len(path.suffixes) > 1 else path.suffix
    handler = ARCHIVE_HANDLERS.get(format.lower()) or ARCHIVE_HANDLERS.get(path.suffix.lower())
    if not handler:
        raise ExtractionError(
            f"Unsupported archive format: {filename}",
            details={"filename": filename},
        )
    return handler()

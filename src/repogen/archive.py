"""Helpers for the container formats packages and indexes are wrapped in.

Covers tar archives and the gzip, xz and zstd compression layers around
them. Debian's `ar` container is read with python-debian in `codecs.deb`.
"""

import gzip
import io
import logging
import lzma
import tarfile
import time
import zlib
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import StrEnum
from typing import BinaryIO, NamedTuple

import zstandard

logger = logging.getLogger(__name__)


class Compression(StrEnum):
    NONE = "none"
    GZIP = "gz"
    XZ = "xz"
    ZSTD = "zst"

    @classmethod
    def from_name(cls, name: str) -> "Compression":
        """Pick the compression from a file or member name suffix."""
        if name.endswith(".gz"):
            return cls.GZIP
        if name.endswith(".xz"):
            return cls.XZ
        if name.endswith(".zst"):
            return cls.ZSTD
        return cls.NONE


def decompress(data: bytes, compression: Compression) -> bytes:
    match compression:
        case Compression.GZIP:
            return gzip.decompress(data)
        case Compression.XZ:
            return lzma.decompress(data)
        case Compression.ZSTD:
            dctx = zstandard.ZstdDecompressor()
            with dctx.stream_reader(io.BytesIO(data), read_across_frames=True) as reader:
                return reader.read()
        case Compression.NONE:
            return data
        case _:
            raise ValueError(f"Unknown or unsupported compression: {compression}")


def compress(data: bytes, compression: Compression) -> bytes:
    match compression:
        case Compression.GZIP:
            return gzip.compress(data, mtime=0)
        case Compression.XZ:
            return lzma.compress(data)
        case Compression.ZSTD:
            return zstandard.ZstdCompressor(level=19).compress(data)
        case Compression.NONE:
            return data
        case _:
            raise ValueError(f"Unknown or unsupported compression: {compression}")


def _normalize_member_name(name: str) -> str:
    return name.removeprefix("./").rstrip("/")


@contextmanager
def open_tar(fileobj: BinaryIO, compression: Compression = Compression.NONE) -> Iterator[tarfile.TarFile]:
    """Open a possibly compressed tar for sequential reading.

    Members are decompressed as they are reached, so looking up an entry near
    the start of a large package does not read the rest of it. Concatenated
    gzip members (Alpine packages) and zstd frames are read as one stream.
    """
    match compression:
        case Compression.GZIP:
            with tarfile.open(fileobj=fileobj, mode="r:gz", ignore_zeros=True) as tar:
                yield tar
        case Compression.XZ:
            with tarfile.open(fileobj=fileobj, mode="r:xz", ignore_zeros=True) as tar:
                yield tar
        case Compression.ZSTD:
            dctx = zstandard.ZstdDecompressor()
            with (
                dctx.stream_reader(fileobj, read_across_frames=True, closefd=False) as reader,
                tarfile.open(fileobj=reader, mode="r|", ignore_zeros=True) as tar,
            ):
                yield tar
        case Compression.NONE:
            with tarfile.open(fileobj=fileobj, mode="r:", ignore_zeros=True) as tar:
                yield tar
        case _:
            raise ValueError(f"Unknown or unsupported compression: {compression}")


def find_tar_member(tar: tarfile.TarFile, names: Iterable[str]) -> bytes | None:
    """Return the first regular file whose normalized name is one of `names`."""
    wanted = {_normalize_member_name(name) for name in names}
    for member in tar:
        if member.isfile() and _normalize_member_name(member.name) in wanted:
            if (fh := tar.extractfile(member)) is not None:
                return fh.read()
    return None


def read_tar_member(data: bytes, names: Iterable[str]) -> bytes | None:
    """Look up a member of an in-memory, uncompressed tar."""
    with open_tar(io.BytesIO(data)) as tar:
        return find_tar_member(tar, names)


def iter_tar_files(data: bytes) -> Iterator[tuple[str, bytes]]:
    """Yield `(name, content)` for every regular file in an uncompressed tar."""
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:", ignore_zeros=True) as tar:
        for member in tar:
            if not member.isfile():
                continue
            if (fh := tar.extractfile(member)) is not None:
                yield _normalize_member_name(member.name), fh.read()


class TarEntry(NamedTuple):
    name: str
    data: bytes | None = None  # None for a directory
    mode: int = 0o644


def build_tar(entries: Iterable[TarEntry], mtime: int | None = None) -> bytes:
    """Assemble an uncompressed tar archive in memory."""
    if mtime is None:
        mtime = int(time.time())
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w", format=tarfile.GNU_FORMAT) as tar:
        for entry in entries:
            info = tarfile.TarInfo(entry.name)
            info.mode = entry.mode
            info.mtime = mtime
            info.uname = info.gname = "root"
            if entry.data is None:
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
            else:
                info.size = len(entry.data)
                tar.addfile(info, io.BytesIO(entry.data))
    return buffer.getvalue()


# Exceptions the standard decompressors and tarfile raise on corrupt input
ARCHIVE_ERRORS: tuple[type[Exception], ...] = (
    ValueError,
    EOFError,
    OSError,
    tarfile.TarError,
    lzma.LZMAError,
    zlib.error,
    zstandard.ZstdError,
)

"""Minimal reader for the binary RPM package header.

An RPM file is laid out as:
  - Lead: 96 bytes, starting with 0xEDABEEDB
  - Signature header, padded to an 8-byte boundary
  - Main header (the one carrying package metadata)
  - Compressed payload (ignored here)

Each header follows the same structure:
  - Magic: 0x8eade8
  - Version: 1 byte
  - Reserved: 4 bytes
  - nindex: number of index entries (4 bytes big-endian)
  - hsize: size of the data store (4 bytes big-endian)
  - index[]: array of (tag, type, offset, count)
  - store[]: raw data referenced by the index
"""

import struct
from enum import IntEnum
from typing import BinaryIO, NamedTuple

RPM_LEAD_MAGIC = b"\xed\xab\xee\xdb"
RPM_LEAD_SIZE = 96
RPM_HEADER_MAGIC = b"\x8e\xad\xe8"
RPM_HEADER_INTRO_SIZE = 16
RPM_INDEX_ENTRY_SIZE = 16

type TagValue = str | list[str] | list[int] | bytes


class RpmTag(IntEnum):
    NAME = 1000
    VERSION = 1001
    RELEASE = 1002
    EPOCH = 1003
    SUMMARY = 1004
    DESCRIPTION = 1005
    BUILDTIME = 1006
    SIZE = 1009
    DISTRIBUTION = 1010
    LICENSE = 1014
    PACKAGER = 1015
    GROUP = 1016
    URL = 1020
    ARCH = 1022
    REQUIRENAME = 1049
    DISTURL = 1123
    DISTTAG = 1155


class RpmTagType(IntEnum):
    NULL = 0
    CHAR = 1
    INT8 = 2
    INT16 = 3
    INT32 = 4
    INT64 = 5
    STRING = 6
    BIN = 7
    STRING_ARRAY = 8
    I18NSTRING = 9


class IndexEntry(NamedTuple):
    tag: int
    type: int
    offset: int
    count: int


_INT_FORMATS = {
    RpmTagType.CHAR: ("B", 1),
    RpmTagType.INT8: ("B", 1),
    RpmTagType.INT16: ("H", 2),
    RpmTagType.INT32: ("I", 4),
    RpmTagType.INT64: ("Q", 8),
}


def _read_strings(store: bytes, offset: int, count: int) -> list[str]:
    values = []
    for _ in range(count):
        end = store.find(b"\x00", offset)
        if end == -1:
            end = len(store)
        values.append(store[offset:end].decode("utf-8", errors="replace"))
        offset = end + 1
    return values


def _decode_value(entry: IndexEntry, store: bytes) -> TagValue | None:
    match entry.type:
        case RpmTagType.STRING:
            return _read_strings(store, entry.offset, 1)[0]
        case RpmTagType.STRING_ARRAY | RpmTagType.I18NSTRING:
            return _read_strings(store, entry.offset, entry.count)
        case RpmTagType.BIN:
            return store[entry.offset : entry.offset + entry.count]
        case t if t in _INT_FORMATS:
            fmt, width = _INT_FORMATS[RpmTagType(t)]
            end = entry.offset + width * entry.count
            if end > len(store):
                raise ValueError(f"tag {entry.tag} data runs past end of header store")
            return list(struct.unpack(f">{entry.count}{fmt}", store[entry.offset : end]))
        case _:
            return None


def read_header(fh: BinaryIO) -> tuple[dict[int, TagValue], int]:
    """Parse one header structure at the current position of `fh`.

    Returns:
        The decoded tags and the number of bytes the header occupied

    Raises:
        ValueError: On a bad magic or truncated header
    """
    intro = fh.read(RPM_HEADER_INTRO_SIZE)
    if len(intro) < RPM_HEADER_INTRO_SIZE:
        raise ValueError("truncated RPM header")
    if intro[:3] != RPM_HEADER_MAGIC:
        raise ValueError("bad RPM header magic")

    nindex, hsize = struct.unpack(">II", intro[8:16])
    index_size = nindex * RPM_INDEX_ENTRY_SIZE
    body = fh.read(index_size + hsize)
    if len(body) < index_size + hsize:
        raise ValueError("RPM header extends past end of file")

    store = body[index_size:]
    tags: dict[int, TagValue] = {}
    for entry in map(IndexEntry._make, struct.iter_unpack(">IIII", body[:index_size])):
        if entry.offset > hsize:
            raise ValueError(f"tag {entry.tag} offset outside header store")
        if (value := _decode_value(entry, store)) is not None:
            tags[entry.tag] = value

    return tags, RPM_HEADER_INTRO_SIZE + index_size + hsize


def read_package_header(fh: BinaryIO) -> dict[int, TagValue]:
    """Skip the lead and signature header and return the main header's tags.

    Reading stops at the end of the main header; the payload is never touched.
    """
    lead = fh.read(RPM_LEAD_SIZE)
    if len(lead) < RPM_LEAD_SIZE or not lead.startswith(RPM_LEAD_MAGIC):
        raise ValueError("not an RPM package (bad lead magic)")

    _, sig_size = read_header(fh)
    # the signature header is padded to a multiple of 8 bytes
    fh.read(-sig_size % 8)
    tags, _ = read_header(fh)
    return tags


def tag_string(tags: dict[int, TagValue], tag: RpmTag) -> str:
    """Return a tag as a single string, taking the first element of arrays."""
    match tags.get(tag):
        case str() as value:
            return value
        case [str() as first, *_]:
            return first
        case [int() as first, *_]:
            return str(first)
        case _:
            return ""


def tag_int(tags: dict[int, TagValue], tag: RpmTag) -> int | None:
    match tags.get(tag):
        case [int() as first, *_]:
            return first
        case _:
            return None


def tag_list(tags: dict[int, TagValue], tag: RpmTag) -> list[str]:
    match tags.get(tag):
        case list() as values:
            return [str(value) for value in values]
        case str() as value:
            return [value]
        case _:
            return []

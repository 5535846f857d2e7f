"""Classify a value blob as JSON, text, binary, gzip or zlib."""

from __future__ import annotations

import json
from enum import Enum

# Binary scan looks at this many leading bytes.
SAMPLE_SIZE = 8192

# C0 controls other than tab, LF and CR.
_BINARY_BYTES = frozenset(range(0x00, 0x09)) | {0x0B, 0x0C} | frozenset(range(0x0E, 0x20))
_ZLIB_SECOND = frozenset({0x01, 0x5E, 0x9C, 0xDA})


class DataType(Enum):
    TEXT = "Text"
    JSON = "JSON"
    BINARY = "Binary"
    GZIP = "Gzip"
    ZLIB = "Zlib"

    def __str__(self) -> str:
        return self.value

    @property
    def compressed(self) -> bool:
        return self in (DataType.GZIP, DataType.ZLIB)


def is_gzip(data: bytes) -> bool:
    return len(data) >= 2 and data[0] == 0x1F and data[1] == 0x8B


def is_zlib(data: bytes) -> bool:
    return len(data) >= 2 and data[0] == 0x78 and data[1] in _ZLIB_SECOND


def is_json(data: bytes) -> bool:
    stripped = data.lstrip()
    if not stripped or stripped[:1] not in (b"{", b"["):
        return False
    try:
        json.loads(data)
    except (ValueError, UnicodeDecodeError, RecursionError):
        return False
    return True


def is_binary(data: bytes) -> bool:
    return any(b in _BINARY_BYTES for b in data[:SAMPLE_SIZE])


def detect_type(data: bytes) -> DataType:
    """Rules are tried in order; the first match wins."""
    if not data:
        return DataType.TEXT
    if is_gzip(data):
        return DataType.GZIP
    if is_zlib(data):
        return DataType.ZLIB
    if is_json(data):
        return DataType.JSON
    if is_binary(data):
        return DataType.BINARY
    return DataType.TEXT

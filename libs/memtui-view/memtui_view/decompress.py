"""Size-bounded gzip / zlib decompression."""

from __future__ import annotations

import zlib

from memtui_view.detector import DataType, is_gzip, is_zlib

DEFAULT_MAX_OUTPUT = 16 * 1024 * 1024


class DecompressError(Exception):
    pass


def _inflate(data: bytes, wbits: int, limit: int) -> bytes:
    d = zlib.decompressobj(wbits)
    try:
        out = d.decompress(data, limit + 1)
    except zlib.error as e:
        raise DecompressError(f"decompression failed: {e}") from e
    if len(out) > limit or d.unconsumed_tail:
        raise DecompressError(f"decompressed size exceeds limit of {limit} bytes")
    if not d.eof:
        raise DecompressError("decompression failed: truncated stream")
    return out


def decompress(data: bytes, limit: int = DEFAULT_MAX_OUTPUT) -> tuple[bytes, DataType]:
    """
    Inflate a gzip or zlib blob. Returns (payload, container type).

    Raises DecompressError if the blob is neither, is corrupt, or would
    inflate past ``limit`` bytes.
    """
    if is_gzip(data):
        return _inflate(data, 16 + zlib.MAX_WBITS, limit), DataType.GZIP
    if is_zlib(data):
        return _inflate(data, zlib.MAX_WBITS, limit), DataType.ZLIB
    raise DecompressError("data is not gzip or zlib compressed")

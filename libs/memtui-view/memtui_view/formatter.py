"""Render value blobs as JSON, hex dump, or text, with an Auto dispatcher."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum

from memtui_view.decompress import DEFAULT_MAX_OUTPUT, DecompressError, decompress
from memtui_view.detector import DataType, detect_type

logger = logging.getLogger(__name__)

HEX_BYTES_PER_LINE = 16


class ViewMode(Enum):
    AUTO = "Auto"
    JSON = "JSON"
    HEX = "Hex"
    TEXT = "Text"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> ViewMode:
        for mode in cls:
            if mode.value.lower() == name.strip().lower():
                return mode
        raise ValueError(f"unknown view mode: {name!r} (expected auto, json, hex or text)")


class FormatError(ValueError):
    """Raised by the JSON formatter for input that does not parse."""


def format_json(data: bytes) -> str:
    try:
        obj = json.loads(data)
    except ValueError as e:
        raise FormatError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise FormatError("JSON nested too deeply to format") from e
    try:
        return json.dumps(obj, indent=2, ensure_ascii=False)
    except RecursionError as e:
        raise FormatError("JSON nested too deeply to format") from e


def format_hex(data: bytes) -> str:
    """Classic ``offset  hex bytes  |ascii|`` dump, 16 bytes per line."""
    lines = []
    for offset in range(0, len(data), HEX_BYTES_PER_LINE):
        chunk = data[offset : offset + HEX_BYTES_PER_LINE]
        hex_part = "".join(f"{b:02x} " for b in chunk)
        hex_part += "   " * (HEX_BYTES_PER_LINE - len(chunk))
        ascii_part = "".join(chr(b) if 0x20 <= b <= 0x7E else "." for b in chunk)
        lines.append(f"{offset:08x}  {hex_part} |{ascii_part}|\n")
    return "".join(lines)


def format_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Rendered:
    """Formatter output plus what was detected along the way."""

    text: str
    data_type: DataType
    compression: DataType | None = None
    # Set when a requested mode could not be honoured (e.g. invalid JSON).
    error: str | None = None

    @property
    def type_label(self) -> str:
        if self.compression is not None:
            return f"{self.compression} → {self.data_type}"
        return str(self.data_type)

    @property
    def is_json(self) -> bool:
        return self.data_type is DataType.JSON and self.error is None


def format_auto(data: bytes, limit: int = DEFAULT_MAX_OUTPUT) -> Rendered:
    return _auto(data, limit, allow_decompress=True)


def _auto(data: bytes, limit: int, allow_decompress: bool) -> Rendered:
    dtype = detect_type(data)
    if dtype.compressed:
        if not allow_decompress:
            return Rendered(format_hex(data), dtype)
        try:
            payload, container = decompress(data, limit)
        except DecompressError as e:
            logger.debug(f"Falling back to hex: {e}")
            return Rendered(format_hex(data), dtype, error=str(e))
        inner = _auto(payload, limit, allow_decompress=False)
        return Rendered(inner.text, inner.data_type, compression=container, error=inner.error)
    if dtype is DataType.JSON:
        return Rendered(format_json(data), dtype)
    if dtype is DataType.BINARY:
        return Rendered(format_hex(data), dtype)
    return Rendered(format_text(data), dtype)


def render(data: bytes, mode: ViewMode, limit: int = DEFAULT_MAX_OUTPUT) -> Rendered:
    """
    Format ``data`` for display in ``mode``.

    An explicit JSON request on non-JSON input falls back to text and sets
    ``error``; the caller decides whether to surface it.
    """
    if mode is ViewMode.AUTO:
        return format_auto(data, limit)
    dtype = detect_type(data)
    if mode is ViewMode.HEX:
        return Rendered(format_hex(data), dtype)
    if mode is ViewMode.JSON:
        try:
            return Rendered(format_json(data), DataType.JSON)
        except FormatError as e:
            return Rendered(format_text(data), dtype, error=str(e))
    return Rendered(format_text(data), dtype)

"""memtui view - value classification, decompression and formatting."""

from memtui_view.decompress import DEFAULT_MAX_OUTPUT, DecompressError, decompress
from memtui_view.detector import DataType, detect_type
from memtui_view.formatter import (
    FormatError,
    Rendered,
    ViewMode,
    format_auto,
    format_hex,
    format_json,
    format_text,
    render,
)
from memtui_view.highlight import highlight_json

__all__ = [
    "DataType",
    "detect_type",
    "decompress",
    "DecompressError",
    "DEFAULT_MAX_OUTPUT",
    "ViewMode",
    "Rendered",
    "FormatError",
    "format_auto",
    "format_hex",
    "format_json",
    "format_text",
    "render",
    "highlight_json",
]

__version__ = "0.1.0"

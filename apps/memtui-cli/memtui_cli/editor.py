"""Buffered value editor with dirty tracking and JSON formatting."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from memtui_view.formatter import FormatError, format_json

from memtui_cli.messages import EditorCancelMsg, EditorSaveMsg, KeyMsg, Message
from memtui_cli.textinput import Fragments, TextInput

# Header, metadata, rule, hints, error line.
CHROME_LINES = 5


class EditorMode(Enum):
    TEXT = "Text"
    JSON = "JSON"

    def __str__(self) -> str:
        return self.value


def _decode(value: bytes) -> str:
    # surrogateescape keeps non-UTF-8 bytes intact through an edit round trip
    return value.decode("utf-8", errors="surrogateescape")


def _encode(text: str) -> bytes:
    return text.encode("utf-8", errors="surrogateescape")


def _printable(text: str) -> str:
    return text.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


class Editor:
    """
    Edits one value. ``cas_token`` is the token captured when the editor
    was opened; it travels back out in the save message untouched.
    """

    def __init__(self, key: str, value: bytes, mode: EditorMode = EditorMode.TEXT,
                 cas_token: Optional[int] = None):
        self.key = key
        self.original = bytes(value)
        self.mode = mode
        self.cas_token = cas_token
        self.error: Optional[str] = None
        self.width = 0
        self.height = 0
        self.input = TextInput(_decode(value), multiline=True)
        self.input.move_to(0)

    @property
    def current(self) -> bytes:
        return _encode(self.input.value)

    @property
    def dirty(self) -> bool:
        return self.current != self.original

    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def set_mode(self, mode: EditorMode) -> None:
        self.mode = mode

    def format_json(self) -> None:
        """Re-indent the buffer as JSON; raises FormatError and leaves it alone on failure."""
        formatted = format_json(self.current)
        self.input.set_value(formatted)

    def save(self) -> EditorSaveMsg:
        return EditorSaveMsg(self.key, self.current, self.cas_token)

    def cancel(self) -> EditorCancelMsg:
        return EditorCancelMsg(self.key)

    def update(self, msg: KeyMsg) -> Optional[Message]:
        self.error = None
        if msg.key == "ctrl+s":
            return self.save()
        if msg.key == "esc":
            return self.cancel()
        if msg.key == "ctrl+f":
            if self.mode is EditorMode.JSON:
                try:
                    self.format_json()
                except FormatError as e:
                    self.error = str(e)
            return None
        if msg.key == "ctrl+t":
            self.mode = EditorMode.TEXT if self.mode is EditorMode.JSON else EditorMode.JSON
            return None
        self.input.handle(msg)
        return None

    # ---------- rendering ----------
    def _window(self, lines: list[Fragments], row: int) -> list[Fragments]:
        visible = max(1, self.height - CHROME_LINES) if self.height else len(lines)
        start = max(0, min(row - visible // 2, len(lines) - visible))
        return lines[start : start + visible]

    def render(self) -> Fragments:
        out: Fragments = [("class:editor.header", f"Editing: {self.key}")]
        if self.dirty:
            out += [("", " "), ("class:editor.modified", "[Modified]")]
        out.append(("", "\n"))
        out.append(("class:editor.meta", f"Size: {len(self.current)} bytes | Mode: {self.mode}"))
        out.append(("", "\n"))
        rule = min(max(self.width - 4, 20), 60)
        out.append(("class:editor.rule", "─" * rule))
        out.append(("", "\n"))

        lines: list[Fragments] = [[]]
        for style, text in self.input.render("class:editor.text"):
            for i, part in enumerate(_printable(text).split("\n")):
                if i > 0:
                    lines.append([])
                if part:
                    lines[-1].append((style, part))
        for line in self._window(lines, self.input.cursor_row):
            out.extend(line)
            out.append(("", "\n"))

        if self.error:
            out.append(("class:error", self.error))
            out.append(("", "\n"))
        hints = ["Ctrl+S: Save", "Esc: Cancel"]
        if self.mode is EditorMode.JSON:
            hints.append("Ctrl+F: Format JSON")
        out.append(("class:hint", " | ".join(hints)))
        return out

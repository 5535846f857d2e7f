"""Value viewer pane: metadata header plus scrollable formatted content."""

from __future__ import annotations

from typing import Optional

from memtui_core.models import KeyRecord
from memtui_view.formatter import Rendered, ViewMode, render
from memtui_view.highlight import highlight_json, split_lines

from memtui_cli.messages import KeyMsg

Fragments = list[tuple[str, str]]

# Header, metadata line, rule, and one spare line.
CHROME_LINES = 4
MODE_KEYS = {"J": ViewMode.JSON, "H": ViewMode.HEX, "T": ViewMode.TEXT, "A": ViewMode.AUTO}


class Viewer:
    def __init__(self, default_mode: ViewMode = ViewMode.AUTO):
        self.default_mode = default_mode
        self.mode = default_mode
        self.record: Optional[KeyRecord] = None
        self.value: Optional[bytes] = None
        self.offset = 0
        self.width = 0
        self.height = 0
        self._cache: dict[ViewMode, Rendered] = {}
        self._lines: list[str] = []

    # ---------- state ----------
    def set_size(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._clamp()

    def set_value(self, record: KeyRecord, value: bytes) -> None:
        self.record = record
        self.value = value
        self.offset = 0
        self._cache.clear()
        self._refresh()

    def clear(self) -> None:
        self.record = None
        self.value = None
        self.offset = 0
        self._cache.clear()
        self._lines = []

    def set_mode(self, mode: ViewMode) -> None:
        self.mode = mode
        self._refresh()
        self._clamp()

    @property
    def key(self) -> Optional[str]:
        return self.record.key if self.record is not None else None

    def rendered(self, mode: Optional[ViewMode] = None) -> Optional[Rendered]:
        """Formatter output for ``mode`` (default: current), cached per value."""
        if self.value is None:
            return None
        mode = mode or self.mode
        if mode not in self._cache:
            self._cache[mode] = render(self.value, mode)
        return self._cache[mode]

    def _refresh(self) -> None:
        r = self.rendered()
        if r is None:
            self._lines = []
            return
        text = r.text[:-1] if r.text.endswith("\n") else r.text
        self._lines = text.split("\n")

    @property
    def type_label(self) -> str:
        auto = self.rendered(ViewMode.AUTO)
        return auto.type_label if auto is not None else ""

    # ---------- scrolling ----------
    @property
    def content_height(self) -> int:
        h = self.height - CHROME_LINES
        return h if h >= 1 else 10

    @property
    def page_size(self) -> int:
        return self.content_height

    def max_offset(self) -> int:
        return max(0, len(self._lines) - self.content_height)

    def _clamp(self) -> None:
        self.offset = max(0, min(self.offset, self.max_offset()))

    def scroll(self, delta: int) -> None:
        self.offset += delta
        self._clamp()

    def update(self, msg: KeyMsg) -> None:
        key = msg.key
        if key in ("up", "k"):
            self.scroll(-1)
        elif key in ("down", "j"):
            self.scroll(1)
        elif key == "pgup":
            self.scroll(-self.page_size)
        elif key == "pgdown":
            self.scroll(self.page_size)
        elif key == "home":
            self.offset = 0
        elif key == "end":
            self.offset = self.max_offset()
        elif key in MODE_KEYS:
            self.set_mode(MODE_KEYS[key])

    # ---------- rendering ----------
    def _truncate(self, line: str) -> str:
        if self.width > 3 and len(line) > self.width:
            return line[: self.width - 3] + "..."
        return line

    def render(self) -> Fragments:
        out: Fragments = []
        if self.record is not None:
            out.append(("class:viewer.header", self._truncate(self.record.key)))
            out.append(("", "\n"))
            size = len(self.value) if self.value is not None else self.record.size_bytes
            meta = f"Size: {size} bytes | Type: {self.type_label} | Mode: {self.mode}"
            r = self.rendered()
            if r is not None and r.error:
                meta += f" | {r.error}"
            out.append(("class:viewer.meta", self._truncate(meta)))
            out.append(("", "\n"))
            out.append(("class:viewer.rule", "─" * min(self.width or 60, 60)))
            out.append(("", "\n"))

        if not self.value:
            out.append(("class:viewer.meta", "No value loaded"))
            return out

        self._clamp()
        end = min(len(self._lines), self.offset + self.content_height)
        r = self.rendered()
        if r is not None and r.is_json:
            styled = split_lines(highlight_json("\n".join(self._lines)))
            for line in styled[self.offset : end]:
                out.extend(self._truncate_fragments(line))
                out.append(("", "\n"))
            return out

        for line in self._lines[self.offset : end]:
            out.append(("class:viewer.content", self._truncate(line)))
            out.append(("", "\n"))
        return out

    def _truncate_fragments(self, line: Fragments) -> Fragments:
        total = sum(len(t) for _s, t in line)
        if self.width <= 3 or total <= self.width:
            return line
        budget = self.width - 3
        out: Fragments = []
        for style, text in line:
            if budget <= 0:
                break
            out.append((style, text[:budget]))
            budget -= len(text[:budget])
        out.append(("class:viewer.content", "..."))
        return out

"""Read-only overlays: keybinding help and server statistics."""

from __future__ import annotations

from typing import NamedTuple, Optional

from memtui_core.models import ServerStats, format_bytes

from memtui_cli.messages import ActionMsg, CloseOverlayMsg, KeyMsg, Message
from memtui_cli.textinput import Fragments

KEY_COLUMN = 15
LABEL_COLUMN = 20


class Binding(NamedTuple):
    key: str
    action: str
    category: str


CATEGORIES = ("Global", "Key List", "Viewer")

BINDINGS = [
    Binding("q, Ctrl+C", "Quit", "Global"),
    Binding("?", "Toggle Help", "Global"),
    Binding("Tab, Esc", "Switch Pane", "Global"),
    Binding("r", "Refresh", "Global"),
    Binding("s", "Show Stats", "Global"),
    Binding("Ctrl+P", "Command Palette", "Global"),
    Binding("Up, k", "Move Up", "Key List"),
    Binding("Down, j", "Move Down", "Key List"),
    Binding("Enter, l", "Select / Expand", "Key List"),
    Binding("h", "Collapse / Go to Parent", "Key List"),
    Binding("Space", "Toggle Selection", "Key List"),
    Binding("a / x", "Select All / Clear", "Key List"),
    Binding("/", "Search Mode", "Key List"),
    Binding("d", "Delete Key", "Key List"),
    Binding("n", "Create New Key", "Key List"),
    Binding("e", "Edit Mode", "Viewer"),
    Binding("J", "JSON View", "Viewer"),
    Binding("H", "Hex View", "Viewer"),
    Binding("T", "Text View", "Viewer"),
    Binding("A", "Auto Detect", "Viewer"),
    Binding("c", "Copy Value", "Viewer"),
    Binding("PageUp", "Page Up", "Viewer"),
    Binding("PageDown", "Page Down", "Viewer"),
]


class HelpPanel:
    def __init__(self, bindings: Optional[list[Binding]] = None):
        self.bindings = list(bindings) if bindings is not None else list(BINDINGS)

    def update(self, msg: KeyMsg) -> Optional[Message]:
        if msg.key in ("?", "esc", "q"):
            return CloseOverlayMsg()
        return None

    def render(self) -> Fragments:
        out: Fragments = [("class:dialog.title", "Keybindings Help"), ("", "\n")]
        for cat in CATEGORIES:
            out += [("", "\n"), ("class:help.section", cat), ("", "\n")]
            for b in self.bindings:
                if b.category == cat:
                    out.append(("class:help.key", b.key.ljust(KEY_COLUMN)))
                    out.append(("class:help.action", b.action))
                    out.append(("", "\n"))
        out += [("", "\n"), ("class:hint", "Press ? or Esc to close")]
        return out


def _grade(value: float, warn: float, bad: float, higher_is_better: bool = False) -> str:
    """Style class for a percentage: good, warn or bad."""
    if higher_is_better:
        if value >= bad:
            return "class:stats.good"
        if value >= warn:
            return "class:stats.warn"
        return "class:stats.bad"
    if value >= bad:
        return "class:stats.bad"
    if value >= warn:
        return "class:stats.warn"
    return "class:stats.good"


class StatsPanel:
    """Server statistics; ``r`` asks for a refresh, s/q/Esc close."""

    def __init__(self, stats: Optional[ServerStats] = None):
        self.stats = stats
        self.loading = stats is None
        self.error: Optional[str] = None

    def set_stats(self, stats: ServerStats) -> None:
        self.stats = stats
        self.loading = False
        self.error = None

    def set_error(self, error: str) -> None:
        self.error = error
        self.loading = False

    def update(self, msg: KeyMsg) -> Optional[Message]:
        if msg.key in ("s", "q", "esc"):
            return CloseOverlayMsg()
        if msg.key in ("r", "R"):
            self.loading = True
            return ActionMsg("stats")
        return None

    def _row(self, label: str, value: str, style: str = "class:stats.value") -> Fragments:
        return [
            ("class:stats.label", f"{label}:".ljust(LABEL_COLUMN)),
            ("", " "),
            (style, value),
            ("", "\n"),
        ]

    def render(self) -> Fragments:
        out: Fragments = [("class:dialog.title", "Memcached Statistics"), ("", "\n")]
        if self.error:
            out += [("class:error", self.error), ("", "\n\n"), ("class:hint", "Press 'r' to retry")]
            return out
        s = self.stats
        if s is None:
            out.append(("class:hint", "Loading statistics..." if self.loading else "No statistics available"))
            return out

        def section(title: str) -> None:
            out.extend([("", "\n"), ("class:stats.section", title), ("", "\n")])

        section("Server Info")
        out += self._row("Version", s.version)
        out += self._row("PID", str(s.pid))
        out += self._row("Uptime", s.uptime_formatted)
        section("Connections")
        out += self._row("Current", str(s.curr_connections))
        out += self._row("Total", str(s.total_connections))
        section("Items")
        out += self._row("Current Items", str(s.curr_items))
        out += self._row("Total Items", str(s.total_items))
        if s.evictions > 1000:
            evict_style = "class:stats.bad"
        elif s.evictions > 100:
            evict_style = "class:stats.warn"
        else:
            evict_style = "class:stats.value"
        out += self._row("Evictions", str(s.evictions), evict_style)
        section("Memory")
        out += self._row("Used", format_bytes(s.bytes))
        out += self._row("Limit", format_bytes(s.limit_maxbytes))
        out += self._row("Usage", f"{s.memory_usage:.2f}%", _grade(s.memory_usage, 70, 90))
        section("Performance")
        out += self._row("Hit Rate", f"{s.hit_rate:.2f}%", _grade(s.hit_rate, 70, 90, higher_is_better=True))
        out += self._row("Get Hits", str(s.get_hits))
        out += self._row("Get Misses", str(s.get_misses))
        section("Network I/O")
        out += self._row("Bytes Read", format_bytes(s.bytes_read))
        out += self._row("Bytes Written", format_bytes(s.bytes_written))
        out += [("", "\n"), ("class:hint", "Press 'r' to refresh, 's' or Esc to close")]
        return out

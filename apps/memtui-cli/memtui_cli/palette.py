"""Command palette with fuzzy ranking."""

from __future__ import annotations

from typing import Optional

from memtui_cli.messages import (
    ActionMsg,
    CommandCancelMsg,
    CommandExecuteMsg,
    KeyMsg,
    Message,
    PaletteCommand,
)
from memtui_cli.textinput import Fragments, TextInput

MAX_VISIBLE = 10


def fuzzy_match(query: str, text: str) -> tuple[bool, int]:
    """
    Score ``text`` against ``query``.

    Substring hits score 100 plus bonuses for a match at the start (+50), a
    match after a space/underscore/hyphen (+25), equal length (+50) and an
    exact-case hit (+10). Otherwise the query characters must appear in
    order: +10 each, +5 when adjacent to the previous hit, +15 at a
    non-letter boundary.
    """
    if not query:
        return True, 0
    q = query.lower()
    t = text.lower()

    idx = t.find(q)
    if idx >= 0:
        score = 100
        if idx == 0:
            score += 50
        elif t[idx - 1] in " _-":
            score += 25
        if len(query) == len(text):
            score += 50
        if query in text:
            score += 10
        return True, score

    qi = 0
    score = 0
    consecutive = 0
    last = -1
    for i, ch in enumerate(t):
        if qi < len(q) and ch == q[qi]:
            qi += 1
            score += 10
            if last == i - 1:
                consecutive += 5
            if i == 0 or not t[i - 1].isalpha():
                score += 15
            last = i
    if qi == len(q):
        return True, score + consecutive
    return False, 0


def rank_commands(commands: list[PaletteCommand], query: str) -> list[PaletteCommand]:
    """Matching commands by descending score; ties keep their original order."""
    if not query:
        return list(commands)
    scored: list[tuple[int, PaletteCommand]] = []
    for cmd in commands:
        name_ok, name_score = fuzzy_match(query, cmd.name)
        desc_ok, desc_score = fuzzy_match(query, cmd.description)
        if not (name_ok or desc_ok):
            continue
        score = name_score if name_ok else 0
        if desc_ok:
            score += desc_score // 2
        scored.append((score, cmd))
    scored.sort(key=lambda sc: -sc[0])
    return [cmd for _score, cmd in scored]


def _action(name: str):
    return lambda: ActionMsg(name)


def default_commands() -> list[PaletteCommand]:
    return [
        PaletteCommand("Refresh keys", "Reload the key list from Memcached", "r", _action("refresh")),
        PaletteCommand("Delete key", "Delete the selected key", "d", _action("delete")),
        PaletteCommand("New key", "Create a new key-value pair", "n", _action("new")),
        PaletteCommand("Edit value", "Edit the selected key's value", "e", _action("edit")),
        PaletteCommand("Show stats", "Display Memcached server statistics", "s", _action("stats")),
        PaletteCommand("Toggle theme", "Switch between dark and light themes", "", _action("theme")),
        PaletteCommand("Show help", "Display keyboard shortcuts help", "?", _action("help")),
        PaletteCommand("Quit", "Exit the application", "q", _action("quit")),
        PaletteCommand("Filter keys", "Enter key filter/search mode", "/", _action("filter")),
        PaletteCommand("Copy value", "Copy the selected value to clipboard", "c", _action("copy")),
    ]


class CommandPalette:
    def __init__(self, commands: Optional[list[PaletteCommand]] = None):
        self.commands = list(commands) if commands is not None else default_commands()
        self.input = TextInput(placeholder="Type to search commands...")
        self.filtered = list(self.commands)
        self.selected = 0

    def reset(self) -> None:
        self.input.set_value("")
        self._refilter()

    def _refilter(self) -> None:
        self.filtered = rank_commands(self.commands, self.input.value)
        self.selected = 0

    def selected_command(self) -> Optional[PaletteCommand]:
        if 0 <= self.selected < len(self.filtered):
            return self.filtered[self.selected]
        return None

    def move(self, delta: int) -> None:
        if self.filtered:
            self.selected = (self.selected + delta) % len(self.filtered)

    def update(self, msg: KeyMsg) -> Optional[Message]:
        key = msg.key
        if key == "enter":
            cmd = self.selected_command()
            return CommandExecuteMsg(cmd) if cmd is not None else None
        if key == "esc":
            return CommandCancelMsg()
        if key in ("up", "shift+tab"):
            self.move(-1)
            return None
        if key in ("down", "tab"):
            self.move(1)
            return None
        if key in ("k", "j") and not self.input.value:
            self.move(-1 if key == "k" else 1)
            return None
        if self.input.handle(msg):
            self._refilter()
        return None

    def render(self) -> Fragments:
        out: Fragments = [("class:dialog.title", "Command Palette"), ("", "\n\n")]
        out += self.input.render()
        out.append(("", "\n\n"))
        if not self.filtered:
            out += [("class:palette.empty", "No matching commands"), ("", "\n")]
        else:
            start = max(0, self.selected - MAX_VISIBLE + 1)
            shown = self.filtered[start : start + MAX_VISIBLE]
            for i, cmd in enumerate(shown, start):
                style = "class:palette.selected" if i == self.selected else "class:palette.item"
                shortcut = f"[{cmd.shortcut}] " if cmd.shortcut else "    "
                out.append(("class:palette.shortcut", shortcut))
                out.append((style, cmd.name))
                out.append(("class:palette.description", f"  {cmd.description}"))
                out.append(("", "\n"))
            remaining = len(self.filtered) - len(shown)
            if remaining > 0:
                out += [("class:palette.empty", " " * 10 + f"... and {remaining} more"), ("", "\n")]
        out.append(("class:hint", "Enter: execute  Esc: cancel  Up/Down: navigate"))
        return out

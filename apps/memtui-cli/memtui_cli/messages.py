"""Messages folded into the application state machine.

Every input the core reacts to is one of these frozen dataclasses: terminal
events, connection lifecycle, results of background commands, and the
results that overlays emit when they close.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from memtui_core.batch import BatchDeleteResult
from memtui_core.models import CASItem, KeyRecord, ServerStats


class AppState(Enum):
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    LOADING = "Loading"
    READY = "Ready"
    ERROR = "Error"


class FocusMode(Enum):
    KEY_LIST = "KeyList"
    VIEWER = "Viewer"
    DIALOG = "Dialog"
    EDITOR = "Editor"
    COMMAND_PALETTE = "CommandPalette"
    HELP = "Help"
    FILTER = "Filter"
    STATS = "Stats"


class Message:
    """Marker base class for everything delivered to ``AppCore.update``."""


# ---------- terminal events ----------
@dataclass(frozen=True)
class KeyMsg(Message):
    """
    A key press. ``key`` is a name for special keys ("enter", "esc",
    "ctrl+p", "up", "space", ...) and the character itself for printable
    input, in which case ``text`` holds the same character. Pasted text
    arrives as key "paste" with the content in ``text``.
    """

    key: str
    text: str = ""

    @property
    def is_rune(self) -> bool:
        return bool(self.text) and self.key not in ("space", "paste")

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class WindowSizeMsg(Message):
    width: int
    height: int


# ---------- connection lifecycle ----------
@dataclass(frozen=True)
class ConnectedMsg(Message):
    version: str
    supports_metadump: bool


@dataclass(frozen=True)
class ErrorMsg(Message):
    """Fatal error: moves the app to the Error state."""

    error: str


# ---------- data results ----------
@dataclass(frozen=True)
class KeysLoadedMsg(Message):
    keys: list[KeyRecord]
    warning: str | None = None


@dataclass(frozen=True)
class KeySelectedMsg(Message):
    record: KeyRecord


@dataclass(frozen=True)
class ValueLoadedMsg(Message):
    item: CASItem


@dataclass(frozen=True)
class ValueErrorMsg(Message):
    key: str
    error: str


@dataclass(frozen=True)
class KeyDeletedMsg(Message):
    key: str


@dataclass(frozen=True)
class DeleteErrorMsg(Message):
    key: str
    error: str


@dataclass(frozen=True)
class KeyCreatedMsg(Message):
    key: str


@dataclass(frozen=True)
class CreateErrorMsg(Message):
    key: str
    error: str


@dataclass(frozen=True)
class ValueSavedMsg(Message):
    key: str


@dataclass(frozen=True)
class SaveErrorMsg(Message):
    key: str
    error: str
    conflict: bool = False


@dataclass(frozen=True)
class BatchDeleteResultMsg(Message):
    result: BatchDeleteResult


@dataclass(frozen=True)
class StatsLoadedMsg(Message):
    stats: ServerStats


@dataclass(frozen=True)
class StatsErrorMsg(Message):
    error: str


@dataclass(frozen=True)
class ClipboardOKMsg(Message):
    pass


@dataclass(frozen=True)
class ClipboardErrMsg(Message):
    error: str


# ---------- overlay results ----------
@dataclass(frozen=True)
class ConfirmResultMsg(Message):
    result: bool
    context: Any = None


@dataclass(frozen=True)
class InputResultMsg(Message):
    value: str
    cancelled: bool = False
    context: Any = None


@dataclass(frozen=True)
class EditorSaveMsg(Message):
    key: str
    value: bytes
    cas_token: int | None = None


@dataclass(frozen=True)
class EditorCancelMsg(Message):
    key: str


@dataclass(frozen=True)
class ActionMsg(Message):
    """A named user intent, produced by command palette entries."""

    name: str


@dataclass(frozen=True)
class PaletteCommand:
    name: str
    description: str
    shortcut: str = ""
    action: Callable[[], Message] | None = None


@dataclass(frozen=True)
class CommandExecuteMsg(Message):
    command: PaletteCommand


@dataclass(frozen=True)
class CommandCancelMsg(Message):
    pass


@dataclass(frozen=True)
class CloseOverlayMsg(Message):
    """Emitted by read-only panels (help, stats) when dismissed."""


@dataclass(frozen=True)
class StatusMsg(Message):
    """Transient, non-fatal status line text."""

    text: str
    is_error: bool = False

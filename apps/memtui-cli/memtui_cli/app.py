"""Application core: the state machine behind the terminal UI.

``AppCore.update`` folds one Message into the state and returns the
Commands to run in the background. It never blocks on IO and is the only
code that mutates the key tree, viewer and overlays.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from memtui_core.capability import detect as detect_capability
from memtui_core.client import ProtocolClient
from memtui_core.errors import MemtuiError
from memtui_core.models import CASItem, KeyRecord
from memtui_core.validation import batch_confirmation_error, key_error
from memtui_view.formatter import ViewMode

from memtui_cli import clipboard
from memtui_cli import commands as cmds
from memtui_cli.config import Config
from memtui_cli.dialogs import ConfirmDialog, InputDialog
from memtui_cli.editor import Editor, EditorMode
from memtui_cli.keytree import KeyTree
from memtui_cli.messages import (
    ActionMsg,
    AppState,
    BatchDeleteResultMsg,
    ClipboardErrMsg,
    ClipboardOKMsg,
    CloseOverlayMsg,
    CommandCancelMsg,
    CommandExecuteMsg,
    ConfirmResultMsg,
    ConnectedMsg,
    CreateErrorMsg,
    DeleteErrorMsg,
    EditorCancelMsg,
    EditorSaveMsg,
    ErrorMsg,
    FocusMode,
    InputResultMsg,
    KeyCreatedMsg,
    KeyDeletedMsg,
    KeyMsg,
    KeySelectedMsg,
    KeysLoadedMsg,
    Message,
    SaveErrorMsg,
    StatsErrorMsg,
    StatsLoadedMsg,
    StatusMsg,
    ValueErrorMsg,
    ValueLoadedMsg,
    ValueSavedMsg,
    WindowSizeMsg,
)
from memtui_cli.palette import CommandPalette
from memtui_cli.panels import HelpPanel, StatsPanel
from memtui_cli.scheduler import Command
from memtui_cli.viewer import Viewer

logger = logging.getLogger(__name__)

HELP_TEXT = "q:quit r:refresh /:filter d:delete e:edit n:new ?:help Tab/Esc:switch Ctrl+P:commands"

Overlay = Union[ConfirmDialog, InputDialog, Editor, CommandPalette, HelpPanel, StatsPanel]
ClientFactory = Callable[[str, Config], Any]


# ---------- dialog contexts ----------
@dataclass(frozen=True)
class DeleteContext:
    key: str


@dataclass(frozen=True)
class BatchDeleteContext:
    keys: tuple[str, ...]


@dataclass(frozen=True)
class NewKeyNameContext:
    pass


@dataclass(frozen=True)
class NewKeyValueContext:
    key: str


def delete_confirm_dialog(key: str) -> ConfirmDialog:
    message = f"Are you sure you want to delete the key?\n\n  {key}\n\nThis action cannot be undone."
    return ConfirmDialog("Delete Key", message, DeleteContext(key))


def batch_delete_dialog(keys: list[str]) -> InputDialog:
    noun = "key" if len(keys) == 1 else "keys"
    return InputDialog(
        "Batch Delete Confirmation",
        placeholder="Type DELETE to confirm",
        validator=batch_confirmation_error,
        context=BatchDeleteContext(tuple(keys)),
        message=f"{len(keys)} {noun} selected. This action cannot be undone.",
    )


def new_key_dialog() -> InputDialog:
    return InputDialog("New Key", placeholder="Enter key name...", validator=key_error,
                       context=NewKeyNameContext())


def value_dialog(key: str) -> InputDialog:
    return InputDialog(f"Value for: {key}", placeholder="Enter value...",
                       context=NewKeyValueContext(key))


def _default_client(addr: str, cfg: Config) -> ProtocolClient:
    t = cfg.connection.timeouts
    return ProtocolClient(addr, connect_timeout=t.connection, timeout=t.operation)


_FOCUS_FOR = {
    ConfirmDialog: FocusMode.DIALOG,
    InputDialog: FocusMode.DIALOG,
    Editor: FocusMode.EDITOR,
    CommandPalette: FocusMode.COMMAND_PALETTE,
    HelpPanel: FocusMode.HELP,
    StatsPanel: FocusMode.STATS,
}


class AppCore:
    def __init__(
        self,
        addr: str,
        config: Optional[Config] = None,
        client_factory: ClientFactory = _default_client,
        probe: cmds.Probe = detect_capability,
        copier: Callable[[str], str] = clipboard.copy,
    ):
        self.addr = addr
        self.config = config or Config()
        self.client_factory = client_factory
        self.probe = probe
        self.copier = copier

        self.state = AppState.CONNECTING
        self.focus = FocusMode.KEY_LIST
        self.width = 0
        self.height = 0
        self.version = ""
        self.supports_metadump = False
        self.client: Any = None

        self.keys: list[KeyRecord] = []
        self.key_tree = KeyTree(self.config.ui.key_delimiter)
        self.viewer = Viewer(ViewMode.parse(self.config.ui.default_view_mode))
        self.current_key: Optional[KeyRecord] = None
        self.current_value: Optional[bytes] = None
        self.current_cas: Optional[CASItem] = None
        # Requested but not yet loaded; current_* switch over together on arrival.
        self.pending_key: Optional[KeyRecord] = None
        # CASItem and record captured when the editor opened
        self.editing: tuple[Optional[CASItem], Optional[KeyRecord]] = (None, None)

        self.overlay: Optional[Overlay] = None
        self.palette = CommandPalette()
        self.filtering = False
        self.filter_input = ""

        self.error = ""
        self.status = ""
        self.status_is_error = False
        self.banner = ""
        self.theme = self.config.ui.theme
        self.quitting = False
        self.bindings = self.config.keybindings.by_key()

        self._handlers: dict[type, Callable[[Any], Optional[list[Command]]]] = {
            WindowSizeMsg: self._on_resize,
            KeyMsg: self._on_key,
            ConnectedMsg: self._on_connected,
            ErrorMsg: self._on_error,
            KeysLoadedMsg: self._on_keys_loaded,
            KeySelectedMsg: self._on_key_selected,
            ValueLoadedMsg: self._on_value_loaded,
            ValueErrorMsg: self._on_value_error,
            KeyDeletedMsg: self._on_key_deleted,
            DeleteErrorMsg: self._on_op_error,
            KeyCreatedMsg: self._on_key_created,
            CreateErrorMsg: self._on_op_error,
            ValueSavedMsg: self._on_value_saved,
            SaveErrorMsg: self._on_op_error,
            BatchDeleteResultMsg: self._on_batch_result,
            StatsLoadedMsg: self._on_stats_loaded,
            StatsErrorMsg: self._on_stats_error,
            ClipboardOKMsg: self._on_clipboard_ok,
            ClipboardErrMsg: self._on_clipboard_err,
            ConfirmResultMsg: self._on_confirm_result,
            InputResultMsg: self._on_input_result,
            EditorSaveMsg: self._on_editor_save,
            EditorCancelMsg: self._on_editor_cancel,
            ActionMsg: lambda m: self.run_action(m.name),
            CommandExecuteMsg: self._on_command_execute,
            CommandCancelMsg: self._on_overlay_closed,
            CloseOverlayMsg: self._on_overlay_closed,
            StatusMsg: lambda m: self.set_status(m.text, m.is_error),
        }

    # ---------- entry points ----------
    def init(self) -> list[Command]:
        return [self._connect_cmd()]

    def update(self, msg: Message) -> list[Command]:
        handler = self._handlers.get(type(msg))
        if handler is None:
            logger.debug(f"Unhandled message {type(msg).__name__}")
            return []
        return handler(msg) or []

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None

    # ---------- helpers ----------
    def set_status(self, text: str, is_error: bool = False) -> None:
        self.status = text
        self.status_is_error = is_error

    def clear_status(self) -> None:
        self.status = ""
        self.status_is_error = False

    def open_overlay(self, overlay: Overlay) -> bool:
        """Show ``overlay``; refused while another one is visible."""
        if self.overlay is not None:
            logger.debug(f"Refusing {type(overlay).__name__}: {type(self.overlay).__name__} is open")
            return False
        self.overlay = overlay
        self.focus = _FOCUS_FOR[type(overlay)]
        if isinstance(overlay, Editor):
            overlay.set_size(self.width, self.height)
        return True

    def close_overlay(self, focus: FocusMode = FocusMode.KEY_LIST) -> None:
        self.overlay = None
        self.focus = focus

    def _connect_cmd(self) -> Command:
        return cmds.connect(self.addr, self.config.connection.timeouts.connection, self.probe)

    def _load_keys_cmd(self) -> Command:
        return cmds.load_keys(self.client, self.supports_metadump,
                              self.config.connection.timeouts.key_enumeration)

    def _forget_current(self) -> None:
        self.pending_key = None
        self.current_key = None
        self.current_value = None
        self.current_cas = None
        self.viewer.clear()

    # ---------- layout ----------
    def _on_resize(self, msg: WindowSizeMsg) -> None:
        self.width = msg.width
        self.height = msg.height
        kl_width, viewer_width = self.pane_widths()
        content = max(1, self.height - self.config.layout.content_padding)
        self.key_tree.set_size(max(1, kl_width - 2), max(1, content - 2))
        self.viewer.set_size(max(1, viewer_width - 2), max(1, content - 2))
        if isinstance(self.overlay, Editor):
            self.overlay.set_size(self.width, self.height)

    def pane_widths(self) -> tuple[int, int]:
        kl = self.width * self.config.layout.keylist_width_percent // 100
        return kl, max(0, self.width - kl - 4)

    # ---------- keys ----------
    def _on_key(self, msg: KeyMsg) -> Optional[list[Command]]:
        if self.state in (AppState.CONNECTING, AppState.LOADING, AppState.ERROR):
            return self._on_key_not_ready(msg)

        self.clear_status()
        if self.overlay is not None:
            result = self.overlay.update(msg)
            return self.update(result) if result is not None else None

        if self.filtering:
            self._on_filter_key(msg)
            return None

        key = msg.key
        if key == "ctrl+c":
            self.quitting = True
            return None
        if key == "esc" and self.focus is FocusMode.VIEWER:
            self.focus = FocusMode.KEY_LIST
            return None
        if key == "tab":
            self.focus = FocusMode.VIEWER if self.focus is FocusMode.KEY_LIST else FocusMode.KEY_LIST
            return None
        action = self.bindings.get(key)
        if action is not None:
            return self.run_action(action)

        if self.focus is FocusMode.KEY_LIST:
            result = self.key_tree.update(msg)
            return self.update(result) if result is not None else None
        if self.focus is FocusMode.VIEWER:
            self.viewer.update(msg)
        return None

    def _on_key_not_ready(self, msg: KeyMsg) -> Optional[list[Command]]:
        if msg.key == "ctrl+c" or self.bindings.get(msg.key) == "quit":
            self.quitting = True
        elif self.state is AppState.ERROR and self.bindings.get(msg.key) == "refresh":
            logger.info(f"Retrying connection to {self.addr}")
            self.close()
            self.error = ""
            self.state = AppState.CONNECTING
            return [self._connect_cmd()]
        return None

    def _on_filter_key(self, msg: KeyMsg) -> None:
        key = msg.key
        if key == "esc":
            self.filtering = False
            self.filter_input = ""
            self.key_tree.set_filter("")
            self.focus = FocusMode.KEY_LIST
            return
        if key == "enter":
            self.filtering = False
            self.focus = FocusMode.KEY_LIST
            return
        if key == "backspace":
            if self.filter_input:
                self.filter_input = self.filter_input[:-1]
                self.key_tree.set_filter(self.filter_input)
            return
        if msg.is_rune or key == "paste":
            self.filter_input += msg.text
            self.key_tree.set_filter(self.filter_input)

    # ---------- actions ----------
    def run_action(self, name: str) -> Optional[list[Command]]:
        """Perform a named user intent (from a key binding or the palette)."""
        if name == "quit":
            self.quitting = True
        elif name == "refresh":
            if self.state in (AppState.CONNECTED, AppState.READY):
                self.state = AppState.LOADING
                return [self._load_keys_cmd()]
        elif name == "filter":
            self.filtering = True
            self.filter_input = ""
            self.key_tree.set_filter("")
            self.focus = FocusMode.FILTER
        elif name == "delete":
            if self.key_tree.has_selection():
                self.open_overlay(batch_delete_dialog(self.key_tree.selected_keys()))
            elif self.current_key is not None:
                self.open_overlay(delete_confirm_dialog(self.current_key.key))
            else:
                self.set_status("No key selected", is_error=True)
        elif name == "edit":
            self._open_editor()
        elif name == "new":
            self.open_overlay(new_key_dialog())
        elif name == "help":
            self.open_overlay(HelpPanel())
        elif name == "commands":
            self.palette.reset()
            self.open_overlay(self.palette)
        elif name == "stats":
            if not isinstance(self.overlay, StatsPanel):
                self.open_overlay(StatsPanel())
            return [cmds.load_stats(self.client)]
        elif name == "theme":
            self.theme = "light" if self.theme == "dark" else "dark"
            self.set_status(f"Theme: {self.theme}")
        elif name == "copy":
            if self.current_value is None:
                self.set_status("No value loaded", is_error=True)
            else:
                text = self.current_value.decode("utf-8", errors="replace")
                return [cmds.copy_to_clipboard(text, self.copier)]
        else:
            logger.warning(f"Unknown action {name!r}")
        return None

    def _open_editor(self) -> None:
        if self.current_key is None or self.current_value is None:
            self.set_status("No value loaded", is_error=True)
            return
        auto = self.viewer.rendered(ViewMode.AUTO)
        mode = EditorMode.JSON if auto is not None and auto.is_json and auto.compression is None else EditorMode.TEXT
        token = self.current_cas.cas_token if self.current_cas is not None else None
        if self.open_overlay(Editor(self.current_key.key, self.current_value, mode, token)):
            self.editing = (self.current_cas, self.current_key)

    # ---------- connection lifecycle ----------
    def _on_connected(self, msg: ConnectedMsg) -> Optional[list[Command]]:
        self.state = AppState.CONNECTED
        self.version = msg.version
        self.supports_metadump = msg.supports_metadump
        try:
            self.client = self.client_factory(self.addr, self.config)
        except MemtuiError as e:
            self.state = AppState.ERROR
            self.error = f"failed to create client: {e}"
            return None
        self.state = AppState.LOADING
        return [self._load_keys_cmd()]

    def _on_error(self, msg: ErrorMsg) -> None:
        logger.warning(f"Fatal error: {msg.error}")
        self.state = AppState.ERROR
        self.error = msg.error

    def _on_keys_loaded(self, msg: KeysLoadedMsg) -> None:
        self.keys = list(msg.keys)
        self.key_tree.set_keys(self.keys)
        self.banner = msg.warning or ""
        self.state = AppState.READY
        logger.info(f"Loaded {len(self.keys)} keys")

    # ---------- values ----------
    def _on_key_selected(self, msg: KeySelectedMsg) -> list[Command]:
        self.pending_key = msg.record
        return [cmds.load_value(self.client, msg.record)]

    def _on_value_loaded(self, msg: ValueLoadedMsg) -> None:
        item = msg.item
        if self.pending_key is None or self.pending_key.key != item.key:
            return
        self.current_key, self.pending_key = self.pending_key, None
        self.current_value = item.value
        self.current_cas = item.copy() if item.cas_token else None
        self.viewer.set_value(self.current_key, item.value)
        if self.overlay is None:
            self.focus = FocusMode.VIEWER

    def _on_value_error(self, msg: ValueErrorMsg) -> None:
        if self.pending_key is not None and self.pending_key.key == msg.key:
            self.pending_key = None
        self.set_status(msg.error, is_error=True)

    def _on_op_error(self, msg: Union[DeleteErrorMsg, CreateErrorMsg, SaveErrorMsg]) -> None:
        self.set_status(msg.error, is_error=True)

    def _on_key_deleted(self, msg: KeyDeletedMsg) -> list[Command]:
        self._forget_current()
        self.focus = FocusMode.KEY_LIST
        self.set_status(f"Deleted key: {msg.key}")
        return [self._load_keys_cmd()]

    def _on_key_created(self, msg: KeyCreatedMsg) -> list[Command]:
        self.set_status(f"Created key: {msg.key}")
        return [self._load_keys_cmd()]

    def _on_value_saved(self, msg: ValueSavedMsg) -> list[Command]:
        self.set_status(f"Saved {msg.key}")
        out = [self._load_keys_cmd()]
        if self.pending_key is None and self.current_key is not None and self.current_key.key == msg.key:
            self.pending_key = self.current_key
            out.append(cmds.load_value(self.client, self.current_key))
        return out

    def _on_batch_result(self, msg: BatchDeleteResultMsg) -> Optional[list[Command]]:
        summary = msg.result.summary()
        self._forget_current()
        self.focus = FocusMode.KEY_LIST
        self.set_status(str(summary), is_error=summary.has_errors)
        if summary.should_refresh:
            return [self._load_keys_cmd()]
        return None

    # ---------- stats / clipboard ----------
    def _on_stats_loaded(self, msg: StatsLoadedMsg) -> None:
        if isinstance(self.overlay, StatsPanel):
            self.overlay.set_stats(msg.stats)

    def _on_stats_error(self, msg: StatsErrorMsg) -> None:
        if isinstance(self.overlay, StatsPanel):
            self.overlay.set_error(msg.error)
        else:
            self.set_status(msg.error, is_error=True)

    def _on_clipboard_ok(self, msg: ClipboardOKMsg) -> None:
        self.set_status("Copied to clipboard")

    def _on_clipboard_err(self, msg: ClipboardErrMsg) -> None:
        self.set_status(f"Failed to copy to clipboard: {msg.error}", is_error=True)

    # ---------- overlay results ----------
    def _on_confirm_result(self, msg: ConfirmResultMsg) -> Optional[list[Command]]:
        self.close_overlay()
        if msg.result and isinstance(msg.context, DeleteContext):
            return [cmds.delete_key(self.client, msg.context.key)]
        return None

    def _on_input_result(self, msg: InputResultMsg) -> Optional[list[Command]]:
        self.close_overlay()
        if msg.cancelled:
            return None
        ctx = msg.context
        if isinstance(ctx, BatchDeleteContext):
            self.key_tree.clear_selection()
            return [cmds.delete_keys(self.client, list(ctx.keys))]
        if isinstance(ctx, NewKeyValueContext):
            return [cmds.create_key(self.client, ctx.key, msg.value.encode("utf-8"))]
        if isinstance(ctx, NewKeyNameContext):
            self.open_overlay(value_dialog(msg.value))
        return None

    def _on_editor_save(self, msg: EditorSaveMsg) -> list[Command]:
        self.close_overlay(FocusMode.VIEWER)
        captured, record = self.editing
        self.editing = (None, None)
        return [cmds.save_value(self.client, msg.key, msg.value, msg.cas_token, captured, record)]

    def _on_editor_cancel(self, msg: EditorCancelMsg) -> None:
        self.editing = (None, None)
        self.close_overlay(FocusMode.VIEWER)

    def _on_command_execute(self, msg: CommandExecuteMsg) -> Optional[list[Command]]:
        self.close_overlay()
        if msg.command.action is None:
            return None
        return self.update(msg.command.action())

    def _on_overlay_closed(self, msg: Message) -> None:
        self.close_overlay()

    # ---------- text for the front end ----------
    def screen_message(self) -> Optional[str]:
        """Full-screen text for the non-ready states, None once ready."""
        if self.state is AppState.CONNECTING:
            return f"Connecting to {self.addr}..."
        if self.state is AppState.LOADING:
            return "Loading keys..."
        if self.state is AppState.ERROR:
            return f"Error: {self.error}\n\nPress 'q' to quit, 'r' to retry."
        return None

    def status_line(self) -> str:
        filt = ""
        if self.filtering:
            filt = f" | Filter: {self.filter_input}_"
        elif self.key_tree.filter:
            filt = f" | Filter: {self.key_tree.filter}"
        count = len(self.key_tree.filtered_records)
        text = f" {self.addr} | {count} keys | {self.version}{filt}"
        selected = len(self.key_tree.selected)
        if selected:
            text += f" | {selected} selected"
        if self.status:
            text += f" | {self.status}"
        return text + " "

    @property
    def help_line(self) -> str:
        return HELP_TEXT

"""Full-screen terminal front end for memtui.

Usage:
  memtui [--addr HOST:PORT]

Layout:
  - Key list (left) and value viewer (right) in a vertical split.
  - Status line and help line at the bottom.
  - Dialogs, editor, palette, help and stats float over the panes.

The front end owns no state of its own: key presses become KeyMsg values
for AppCore, background results are drained from the scheduler on the
event loop, and every pane renders from AppCore on each redraw.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from prompt_toolkit.application import Application
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import (
    ConditionalContainer,
    Dimension,
    Float,
    FloatContainer,
    HSplit,
    Layout,
    VSplit,
    Window,
)
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import DynamicStyle, Style
from prompt_toolkit.widgets import Frame

from memtui_view.highlight import DARK_COLORS, LIGHT_COLORS

from memtui_cli.app import AppCore
from memtui_cli.editor import Editor
from memtui_cli.messages import FocusMode, KeyMsg, Message, WindowSizeMsg
from memtui_cli.scheduler import Command, Scheduler

logger = logging.getLogger(__name__)

# prompt_toolkit key -> KeyMsg name
KEY_NAMES = {
    Keys.Escape: "esc",
    Keys.ControlM: "enter",
    Keys.ControlI: "tab",
    Keys.BackTab: "shift+tab",
    Keys.ControlH: "backspace",
    Keys.Delete: "delete",
    Keys.Up: "up",
    Keys.Down: "down",
    Keys.Left: "left",
    Keys.Right: "right",
    Keys.PageUp: "pgup",
    Keys.PageDown: "pgdown",
    Keys.Home: "home",
    Keys.End: "end",
    Keys.ControlC: "ctrl+c",
    Keys.ControlP: "ctrl+p",
    Keys.ControlS: "ctrl+s",
    Keys.ControlF: "ctrl+f",
    Keys.ControlT: "ctrl+t",
    Keys.ControlA: "ctrl+a",
    Keys.ControlE: "ctrl+e",
    Keys.ControlU: "ctrl+u",
}

BASE_STYLE = {
    "keylist.cursor": "reverse bold",
    "keylist.folder": "bold",
    "dialog.title": "bold",
    "button.focused": "reverse bold",
    "cursor": "reverse",
    "placeholder": "italic",
    "editor.header": "bold",
    "viewer.header": "bold",
    "palette.selected": "reverse",
    "help.section": "bold",
    "stats.section": "bold",
    "error": "bold",
}

THEMES = {
    "dark": {
        **BASE_STYLE,
        **DARK_COLORS,
        "frame.border": "#4B5263",
        "keylist.marked": "#E5C07B",
        "keylist.leaf": "#ABB2BF",
        "keylist.folder": "bold #61AFEF",
        "keylist.empty": "#5C6370 italic",
        "viewer.meta": "#5C6370",
        "viewer.rule": "#4B5263",
        "editor.modified": "#E5C07B",
        "editor.meta": "#5C6370",
        "editor.rule": "#4B5263",
        "dialog.title": "bold #E5C07B",
        "placeholder": "#5C6370 italic",
        "hint": "#5C6370 italic",
        "error": "bold #E06C75",
        "banner": "#E5C07B",
        "status": "bg:#282C34 #ABB2BF",
        "status.error": "bg:#282C34 #E06C75",
        "help": "#5C6370",
        "palette.shortcut": "#E5C07B",
        "palette.description": "#5C6370",
        "palette.empty": "#5C6370 italic",
        "help.section": "bold #56B6C2",
        "help.key": "#E5C07B",
        "stats.label": "#5C6370",
        "stats.section": "bold #56B6C2",
        "stats.good": "#98C379",
        "stats.warn": "#E5C07B",
        "stats.bad": "#E06C75",
    },
    "light": {
        **BASE_STYLE,
        **LIGHT_COLORS,
        "frame.border": "#A0A1A7",
        "keylist.marked": "#986801",
        "keylist.leaf": "#383A42",
        "keylist.folder": "bold #4078F2",
        "keylist.empty": "#A0A1A7 italic",
        "viewer.meta": "#A0A1A7",
        "viewer.rule": "#A0A1A7",
        "editor.modified": "#986801",
        "editor.meta": "#A0A1A7",
        "editor.rule": "#A0A1A7",
        "dialog.title": "bold #986801",
        "placeholder": "#A0A1A7 italic",
        "hint": "#A0A1A7 italic",
        "error": "bold #E45649",
        "banner": "#986801",
        "status": "bg:#E5E5E6 #383A42",
        "status.error": "bg:#E5E5E6 #E45649",
        "help": "#A0A1A7",
        "palette.shortcut": "#986801",
        "palette.description": "#A0A1A7",
        "palette.empty": "#A0A1A7 italic",
        "help.section": "bold #0184BC",
        "help.key": "#986801",
        "stats.label": "#A0A1A7",
        "stats.section": "bold #0184BC",
        "stats.good": "#50A14F",
        "stats.warn": "#986801",
        "stats.bad": "#E45649",
    },
}


def build_style(theme: str) -> Style:
    return Style.from_dict(THEMES.get(theme, THEMES["dark"]))


def key_msg_from_press(key: str, data: str) -> Optional[KeyMsg]:
    """Translate one prompt_toolkit key press into a KeyMsg (None to ignore)."""
    if key == Keys.BracketedPaste:
        return KeyMsg("paste", data.replace("\r\n", "\n").replace("\r", "\n"))
    name = KEY_NAMES.get(key)
    if name is not None:
        return KeyMsg(name)
    if isinstance(key, Keys):
        return None
    if data == " ":
        return KeyMsg("space", " ")
    if len(data) == 1 and data.isprintable():
        return KeyMsg(data, data)
    return None


class MemtuiTUI:
    def __init__(self, core: AppCore, scheduler: Optional[Scheduler] = None):
        self.core = core
        self.scheduler = scheduler or Scheduler()
        self.scheduler.notify = self._notify
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._size = (0, 0)
        self._styles = {name: build_style(name) for name in THEMES}
        self.app = self._build_app()

    # ---------- message pump ----------
    def dispatch(self, msg: Message) -> None:
        self._submit(self.core.update(msg))
        if self.core.quitting and self.app.is_running:
            self.app.exit()

    def _submit(self, commands: list[Command]) -> None:
        for cmd in commands:
            self.scheduler.submit(cmd)

    def _notify(self) -> None:
        # worker thread -> event loop
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._drain)

    def _drain(self) -> None:
        for msg in self.scheduler.drain():
            self.dispatch(msg)
        self.app.invalidate()

    def _before_render(self, _app: Application) -> None:
        size = self.app.output.get_size()
        if (size.columns, size.rows) != self._size:
            self._size = (size.columns, size.rows)
            self.dispatch(WindowSizeMsg(size.columns, size.rows))

    def _pre_run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._submit(self.core.init())

    # ---------- fragments ----------
    def _screen(self):
        return [("class:error" if self.core.error else "", self.core.screen_message() or "")]

    def _banner(self):
        return [("class:banner", self.core.banner)]

    def _status(self):
        style = "class:status.error" if self.core.status_is_error else "class:status"
        return [(style, self.core.status_line())]

    def _overlay(self):
        overlay = self.core.overlay
        return overlay.render() if overlay is not None else []

    def _pane_title(self, name: str, focus: FocusMode) -> str:
        return f"▶ {name}" if self.core.focus is focus else f"  {name}"

    def _overlay_width(self):
        if isinstance(self.core.overlay, Editor):
            return max(20, self.core.width - 4)
        return None

    def _overlay_height(self):
        if isinstance(self.core.overlay, Editor):
            return max(5, self.core.height - 2)
        return None

    # ---------- layout ----------
    def _build_app(self) -> Application:
        core = self.core
        ready = Condition(lambda: core.screen_message() is None)
        has_banner = Condition(lambda: bool(core.banner) and core.screen_message() is None)
        has_overlay = Condition(lambda: core.overlay is not None and core.screen_message() is None)

        key_pane = Frame(
            Window(FormattedTextControl(lambda: core.key_tree.render()), wrap_lines=False),
            title=lambda: self._pane_title("Keys", FocusMode.KEY_LIST),
            width=lambda: Dimension.exact(max(4, core.pane_widths()[0])),
        )
        value_pane = Frame(
            Window(FormattedTextControl(lambda: core.viewer.render()), wrap_lines=False),
            title=lambda: self._pane_title("Value", FocusMode.VIEWER),
        )
        body = HSplit([
            ConditionalContainer(VSplit([key_pane, value_pane]), filter=ready),
            ConditionalContainer(Window(FormattedTextControl(self._screen), wrap_lines=True), filter=~ready),
            ConditionalContainer(Window(FormattedTextControl(self._banner), height=1), filter=has_banner),
            Window(FormattedTextControl(self._status), height=1, style="class:status"),
            Window(FormattedTextControl(lambda: [("class:help", core.help_line)]), height=1),
        ])
        root = FloatContainer(
            content=body,
            floats=[
                Float(
                    content=ConditionalContainer(
                        Frame(Window(FormattedTextControl(self._overlay), wrap_lines=False)),
                        filter=has_overlay,
                    ),
                    width=self._overlay_width,
                    height=self._overlay_height,
                ),
            ],
        )

        kb = KeyBindings()

        def press(event) -> None:
            msg = key_msg_from_press(event.key_sequence[0].key, event.data)
            if msg is not None:
                self.dispatch(msg)

        for key in KEY_NAMES:
            kb.add(key)(press)
        kb.add(Keys.BracketedPaste)(press)
        kb.add(Keys.Any)(press)

        app: Application = Application(
            layout=Layout(root),
            key_bindings=kb,
            style=DynamicStyle(lambda: self._styles.get(core.theme, self._styles["dark"])),
            full_screen=True,
            mouse_support=False,
            before_render=self._before_render,
        )
        app.ttimeoutlen = 0.05
        return app

    def run(self) -> None:
        try:
            self.app.run(pre_run=self._pre_run)
        finally:
            self.scheduler.shutdown()
            self.core.close()


def run_tui(core: AppCore) -> None:
    MemtuiTUI(core).run()

"""Modal confirm and input dialogs."""

from __future__ import annotations

from typing import Any, Callable, Optional

from memtui_cli.messages import ConfirmResultMsg, InputResultMsg, KeyMsg, Message
from memtui_cli.textinput import Fragments, TextInput

# Returns the error text, or None when the value is acceptable.
Validator = Callable[[str], Optional[str]]

DIALOG_WIDTH = 50
INPUT_CHAR_LIMIT = 256


class ConfirmDialog:
    """Yes/No question. Focus starts on No."""

    def __init__(self, title: str, message: str, context: Any = None, default_yes: bool = False):
        self.title = title
        self.message = message
        self.context = context
        self.focused_yes = default_yes

    def _resolve(self, result: bool) -> ConfirmResultMsg:
        return ConfirmResultMsg(result, self.context)

    def update(self, msg: KeyMsg) -> Optional[Message]:
        key = msg.key
        if key in ("tab", "shift+tab"):
            self.focused_yes = not self.focused_yes
        elif key in ("left", "h"):
            self.focused_yes = True
        elif key in ("right", "l"):
            self.focused_yes = False
        elif key == "enter":
            return self._resolve(self.focused_yes)
        elif key == "esc":
            return self._resolve(False)
        elif key in ("y", "Y"):
            return self._resolve(True)
        elif key in ("n", "N"):
            return self._resolve(False)
        return None

    def render(self) -> Fragments:
        yes_style = "class:button.focused" if self.focused_yes else "class:button"
        no_style = "class:button" if self.focused_yes else "class:button.focused"
        return [
            ("class:dialog.title", self.title),
            ("", "\n"),
            ("class:dialog.message", self.message),
            ("", "\n\n"),
            (yes_style, "[ Yes ]"),
            ("", "  "),
            (no_style, "[ No ]"),
            ("", "\n"),
            ("class:hint", "y/n: quick select  Tab: switch  Enter: confirm  Esc: cancel"),
        ]


class InputDialog:
    """
    Single-line prompt with optional validation.

    A rejected submission keeps the dialog open and shows the validator's
    message until the next key press.
    """

    def __init__(
        self,
        title: str,
        placeholder: str = "",
        value: str = "",
        validator: Optional[Validator] = None,
        context: Any = None,
        message: str = "",
    ):
        self.title = title
        self.message = message
        self.validator = validator
        self.context = context
        self.error: Optional[str] = None
        self.input = TextInput(value, placeholder=placeholder, char_limit=INPUT_CHAR_LIMIT)

    @property
    def value(self) -> str:
        return self.input.value

    def submit(self) -> Optional[InputResultMsg]:
        value = self.input.value
        if self.validator is not None:
            err = self.validator(value)
            if err:
                self.error = err
                return None
        return InputResultMsg(value, False, self.context)

    def cancel(self) -> InputResultMsg:
        return InputResultMsg("", True, self.context)

    def update(self, msg: KeyMsg) -> Optional[Message]:
        if msg.key == "enter":
            return self.submit()
        if msg.key == "esc":
            return self.cancel()
        self.input.handle(msg)
        self.error = None
        return None

    def render(self) -> Fragments:
        out: Fragments = [("class:dialog.title", self.title), ("", "\n")]
        if self.message:
            out += [("class:dialog.message", self.message), ("", "\n")]
        out.append(("", "\n"))
        out += self.input.render()
        out.append(("", "\n"))
        if self.error:
            out += [("class:error", self.error), ("", "\n")]
        out.append(("class:hint", "Enter: submit  Esc: cancel"))
        return out

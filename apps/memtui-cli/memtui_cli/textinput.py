"""Headless text input widget built on prompt_toolkit's Document."""

from __future__ import annotations

from prompt_toolkit.document import Document

from memtui_cli.messages import KeyMsg

Fragments = list[tuple[str, str]]


class TextInput:
    """
    Single- or multi-line edit buffer with a cursor.

    ``handle`` applies a key press and reports whether it was consumed;
    keys it does not understand are left for the owner.
    """

    def __init__(self, value: str = "", placeholder: str = "", multiline: bool = False,
                 char_limit: int = 0):
        self.placeholder = placeholder
        self.multiline = multiline
        self.char_limit = char_limit
        self.focused = True
        self._doc = Document(value, len(value))

    # ---------- widget contract ----------
    def focus(self) -> None:
        self.focused = True

    def blur(self) -> None:
        self.focused = False

    @property
    def value(self) -> str:
        return self._doc.text

    def set_value(self, value: str) -> None:
        if self.char_limit:
            value = value[: self.char_limit]
        self._doc = Document(value, len(value))

    @property
    def cursor(self) -> int:
        return self._doc.cursor_position

    @property
    def cursor_row(self) -> int:
        return self._doc.cursor_position_row

    def move_to(self, pos: int) -> None:
        self._set(self._doc.text, pos)

    # ---------- editing ----------
    def _set(self, text: str, cursor: int) -> None:
        self._doc = Document(text, max(0, min(cursor, len(text))))

    def insert(self, s: str) -> None:
        if not self.multiline:
            s = s.replace("\r", "").replace("\n", " ")
        if self.char_limit:
            room = self.char_limit - len(self._doc.text)
            if room <= 0:
                return
            s = s[:room]
        d = self._doc
        self._set(d.text_before_cursor + s + d.text_after_cursor, d.cursor_position + len(s))

    def backspace(self) -> None:
        d = self._doc
        if d.cursor_position == 0:
            return
        self._set(d.text_before_cursor[:-1] + d.text_after_cursor, d.cursor_position - 1)

    def delete(self) -> None:
        d = self._doc
        self._set(d.text_before_cursor + d.text_after_cursor[1:], d.cursor_position)

    def _move(self, offset: int) -> None:
        self._set(self._doc.text, self._doc.cursor_position + offset)

    def handle(self, msg: KeyMsg) -> bool:
        key = msg.key
        d = self._doc
        if key == "paste":
            self.insert(msg.text)
        elif msg.is_rune:
            self.insert(msg.text)
        elif key == "space":
            self.insert(" ")
        elif key == "enter" and self.multiline:
            self.insert("\n")
        elif key == "tab" and self.multiline:
            self.insert("\t")
        elif key == "backspace":
            self.backspace()
        elif key == "delete":
            self.delete()
        elif key == "left":
            self._move(d.get_cursor_left_position())
        elif key == "right":
            self._move(d.get_cursor_right_position())
        elif key == "up" and self.multiline:
            self._move(d.get_cursor_up_position())
        elif key == "down" and self.multiline:
            self._move(d.get_cursor_down_position())
        elif key in ("home", "ctrl+a"):
            self._move(d.get_start_of_line_position())
        elif key in ("end", "ctrl+e"):
            self._move(d.get_end_of_line_position())
        elif key == "ctrl+u":
            self._set(d.text_after_cursor, 0)
        else:
            return False
        return True

    # ---------- rendering ----------
    def render(self, style: str = "class:input") -> Fragments:
        """Fragments for the buffer; the cursor cell is reverse-video when focused."""
        text = self._doc.text
        if not text and self.placeholder:
            out: Fragments = []
            if self.focused:
                out.append(("class:cursor", " "))
            out.append(("class:placeholder", self.placeholder))
            return out
        if not self.focused:
            return [(style, text)]
        pos = self._doc.cursor_position
        under = text[pos : pos + 1]
        out = [(style, text[:pos])]
        if under in ("", "\n"):
            out.append(("class:cursor", " "))
            out.append((style, text[pos:]))
        else:
            out.append(("class:cursor", under))
            out.append((style, text[pos + 1 :]))
        return [f for f in out if f[1]]

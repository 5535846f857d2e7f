"""JSON syntax highlighting into ``(style, text)`` fragments."""

from __future__ import annotations

import re

STRING = "class:json.string"
NUMBER = "class:json.number"
BOOLEAN = "class:json.boolean"
NULL = "class:json.null"
KEY = "class:json.key"
BRACKET = "class:json.bracket"

DARK_COLORS = {
    "json.string": "#98C379",
    "json.number": "#56B6C2",
    "json.boolean": "#E5C07B",
    "json.null": "#C678DD",
    "json.key": "#61AFEF",
    "json.bracket": "#ABB2BF",
}

LIGHT_COLORS = {
    "json.string": "#50A14F",
    "json.number": "#0184BC",
    "json.boolean": "#986801",
    "json.null": "#A626A4",
    "json.key": "#4078F2",
    "json.bracket": "#383A42",
}

_TOKEN = re.compile(
    r"""
    (?P<string>"(?:[^"\\]|\\.)*"?)
  | (?P<bracket>[{}\[\]])
  | (?P<literal>true|false|null)
  | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
  | (?P<other>.)
    """,
    re.VERBOSE | re.DOTALL,
)
_KEY_FOLLOW = re.compile(r"\s*:")

Fragments = list[tuple[str, str]]


def highlight_json(text: str) -> Fragments:
    """
    Tokenize pretty-printed JSON. Strings followed by ``:`` are keys.
    Unrecognised characters pass through unstyled.
    """
    out: Fragments = []
    plain: list[str] = []

    def flush() -> None:
        if plain:
            out.append(("", "".join(plain)))
            plain.clear()

    for m in _TOKEN.finditer(text):
        kind = m.lastgroup
        tok = m.group()
        if kind == "other":
            plain.append(tok)
            continue
        flush()
        if kind == "string":
            style = KEY if _KEY_FOLLOW.match(text, m.end()) else STRING
        elif kind == "bracket":
            style = BRACKET
        elif kind == "literal":
            style = NULL if tok == "null" else BOOLEAN
        else:
            style = NUMBER
        out.append((style, tok))
    flush()
    return out


def split_lines(fragments: Fragments) -> list[Fragments]:
    """Split a fragment list on newlines (newline characters are dropped)."""
    lines: list[Fragments] = [[]]
    for style, text in fragments:
        parts = text.split("\n")
        for i, part in enumerate(parts):
            if i > 0:
                lines.append([])
            if part:
                lines[-1].append((style, part))
    return lines

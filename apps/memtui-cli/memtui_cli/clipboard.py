"""System clipboard access through whatever helper the platform provides."""

from __future__ import annotations

import base64
import logging
import shutil
import subprocess
import sys
from typing import Optional, TextIO

logger = logging.getLogger(__name__)

COPY_TIMEOUT = 5.0

# (executable, extra args), tried in order
HELPERS = [
    ("pbcopy", []),
    ("wl-copy", []),
    ("xclip", ["-selection", "clipboard"]),
    ("xsel", ["--clipboard", "--input"]),
    ("clip.exe", []),
]


class ClipboardError(Exception):
    pass


def _helper_commands() -> list[list[str]]:
    out = []
    for name, args in HELPERS:
        path = shutil.which(name)
        if path:
            out.append([path, *args])
    return out


def osc52(text: str) -> str:
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return f"\033]52;c;{encoded}\a"


def copy(text: str, stream: Optional[TextIO] = None) -> str:
    """
    Put ``text`` on the clipboard and return the name of the backend used.

    Falls back to an OSC 52 escape on ``stream`` (the real stdout by
    default) when no helper succeeds.
    """
    failures: list[str] = []
    for cmd in _helper_commands():
        try:
            subprocess.run(cmd, input=text, text=True, capture_output=True,
                           check=True, timeout=COPY_TIMEOUT)
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"Clipboard helper {cmd[0]} failed: {e}")
            failures.append(f"{cmd[0]}: {e}")
            continue
        return cmd[0]

    out = stream if stream is not None else sys.__stdout__
    if out is None or not out.isatty():
        detail = "; ".join(failures) or "no clipboard helper found"
        raise ClipboardError(detail)
    try:
        out.write(osc52(text))
        out.flush()
    except OSError as e:
        raise ClipboardError(str(e)) from e
    return "OSC52"

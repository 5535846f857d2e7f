"""Server capability probe: version lookup and METADUMP support."""

from __future__ import annotations

import logging
import re

from memtui_core.cancel import CancelToken
from memtui_core.errors import ConnectError, MemtuiError, ServerError
from memtui_core.models import ServerCapability, parse_stats_lines
from memtui_core.wire import LineReader, open_connection, send_command

logger = logging.getLogger(__name__)

MIN_METADUMP_VERSION = (1, 4, 31)
DEFAULT_PROBE_TIMEOUT = 10.0

_NUM = re.compile(r"\d+")


def parse_version(version: str) -> tuple[int, int, int]:
    """
    Parse "1.6.21" (or "1.4.31-beta", "1.6") into a comparable triple.

    Raises ValueError when no leading numeric component is present.
    """
    parts: list[int] = []
    for piece in version.strip().split("-", 1)[0].split(".")[:3]:
        m = _NUM.match(piece)
        if not m:
            break
        parts.append(int(m.group()))
    if not parts:
        raise ValueError(f"invalid memcached version: {version!r}")
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def is_version_supported(version: str) -> bool:
    try:
        return parse_version(version) >= MIN_METADUMP_VERSION
    except ValueError:
        return False


def read_stats(addr: str, timeout: float = DEFAULT_PROBE_TIMEOUT,
               token: CancelToken | None = None) -> dict[str, str]:
    """Send ``stats`` on a fresh connection and return the STAT map."""
    token = token or CancelToken(timeout)
    sock = open_connection(addr, timeout)
    try:
        send_command(sock, "stats")
        reader = LineReader(sock, token, idle_timeout=timeout)
        lines: list[str] = []
        while True:
            line = reader.readline().decode("utf-8", errors="replace")
            if line == "END":
                break
            if line.startswith(("ERROR", "CLIENT_ERROR", "SERVER_ERROR")):
                raise ServerError(line)
            lines.append(line)
        return parse_stats_lines(lines)
    finally:
        sock.close()


def detect(addr: str, timeout: float = DEFAULT_PROBE_TIMEOUT,
           token: CancelToken | None = None) -> ServerCapability:
    """
    Probe ``addr``. This is the connection gate: any failure comes back as
    ConnectError so callers need a single except clause.
    """
    try:
        stats = read_stats(addr, timeout, token)
    except ConnectError:
        raise
    except MemtuiError as e:
        raise ConnectError(f"failed to probe {addr}: {e}") from e

    version = stats.get("version", "")
    if not version:
        raise ConnectError(f"server at {addr} did not report a version")
    cap = ServerCapability(
        version=version,
        supports_metadump=is_version_supported(version),
        stats=stats,
    )
    logger.info(f"Connected to memcached {version} at {addr} (metadump: {cap.supports_metadump})")
    return cap

"""Raw ASCII-protocol socket helpers (address parsing, line reading)."""

from __future__ import annotations

import logging
import socket

from memtui_core.cancel import CancelToken
from memtui_core.errors import ConnectError, OperationCancelled

logger = logging.getLogger(__name__)

DEFAULT_PORT = 11211
# Poll interval while waiting on a socket under a cancellation token.
POLL_INTERVAL = 0.25


def parse_address(addr: str) -> tuple[str, int]:
    """
    Split ``host:port`` / ``[v6]:port`` / ``host`` into (host, port).

    Raises ConnectError for anything that cannot name a TCP endpoint.
    """
    addr = (addr or "").strip()
    if not addr:
        raise ConnectError("server address cannot be empty")

    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ConnectError(f"invalid address format: {addr}")
        host, rest = addr[1:end], addr[end + 1 :]
        if not rest:
            port_s = str(DEFAULT_PORT)
        elif rest.startswith(":"):
            port_s = rest[1:]
        else:
            raise ConnectError(f"invalid address format: {addr}")
    elif addr.count(":") == 1:
        host, port_s = addr.split(":")
    elif ":" in addr:
        raise ConnectError(f"invalid address format: {addr} (wrap IPv6 hosts in brackets)")
    else:
        host, port_s = addr, str(DEFAULT_PORT)

    if not host:
        raise ConnectError(f"invalid address format: {addr}")
    try:
        port = int(port_s)
    except ValueError as e:
        raise ConnectError(f"invalid port in address: {addr}") from e
    if not 0 < port < 65536:
        raise ConnectError(f"invalid port in address: {addr}")
    return host, port


def open_connection(addr: str, timeout: float) -> socket.socket:
    host, port = parse_address(addr)
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise ConnectError(f"failed to connect to {addr}: {e}") from e
    logger.debug(f"Opened raw connection to {addr}")
    return sock


class LineReader:
    """Buffered CRLF line reader over a socket that honours a CancelToken."""

    def __init__(
        self,
        sock: socket.socket,
        token: CancelToken | None = None,
        idle_timeout: float | None = None,
        chunk: int = 65536,
    ):
        self.sock = sock
        self.token = token
        self.idle_timeout = idle_timeout
        self.chunk = chunk
        self._buf = b""

    def readline(self) -> bytes:
        """Return the next line without its terminator; raises on EOF."""
        while True:
            idx = self._buf.find(b"\n")
            if idx >= 0:
                line = self._buf[:idx]
                self._buf = self._buf[idx + 1 :]
                return line.rstrip(b"\r")
            self._fill()

    def _fill(self) -> None:
        idle = 0.0
        while True:
            wait = self.idle_timeout
            if self.token is not None:
                if self.token.cancelled:
                    raise OperationCancelled(
                        "operation timed out" if self.token.expired else "operation cancelled"
                    )
                wait = self.token.remaining(POLL_INTERVAL) or POLL_INTERVAL
            self.sock.settimeout(wait)
            try:
                data = self.sock.recv(self.chunk)
            except socket.timeout as e:
                idle += wait or 0.0
                if self.idle_timeout is not None and idle >= self.idle_timeout:
                    raise ConnectError("timed out waiting for server reply") from e
                if self.token is None:
                    raise ConnectError("timed out waiting for server reply") from e
                continue
            except OSError as e:
                raise ConnectError(f"connection error: {e}") from e
            if not data:
                raise ConnectError("connection closed by server")
            self._buf += data
            return


def send_command(sock: socket.socket, command: str) -> None:
    try:
        sock.sendall(command.encode("utf-8") + b"\r\n")
    except OSError as e:
        raise ConnectError(f"failed to send {command.split(' ')[0]!r}: {e}") from e

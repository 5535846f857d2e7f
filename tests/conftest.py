"""Shared fixtures: an in-process memcached speaking the ASCII protocol subset we use."""

from __future__ import annotations

import itertools
import os
import socketserver
import threading
import time
from pathlib import Path
from typing import Dict
from urllib.parse import quote

import pytest


class FakeMemcached(socketserver.ThreadingTCPServer):
    """
    Enough of memcached for get/gets/set/cas/delete/stats/version and
    ``lru_crawler metadump all``. Items are ``key -> [value, flags, exp_abs, cas]``.
    """

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, version: str = "1.6.21"):
        super().__init__(("127.0.0.1", 0), _Handler)
        self.version = version
        self.items: dict[str, list] = {}
        self.lock = threading.Lock()
        self.cas_counter = itertools.count(100)
        self.stop = threading.Event()
        # When set, metadump streams its records and then stalls without END.
        self.stall_metadump = False
        self.metadump_error: str | None = None
        self.commands: list[str] = []

    @property
    def addr(self) -> str:
        host, port = self.server_address[:2]
        return f"{host}:{port}"

    def put(self, key: str, value: bytes, flags: int = 0, exp_abs: int = 0) -> int:
        with self.lock:
            cas = next(self.cas_counter)
            self.items[key] = [value, flags, exp_abs, cas]
            return cas


class _Handler(socketserver.StreamRequestHandler):
    server: FakeMemcached

    def _send(self, data: bytes) -> None:
        self.wfile.write(data)
        self.wfile.flush()

    def handle(self) -> None:
        while not self.server.stop.is_set():
            line = self.rfile.readline()
            if not line:
                return
            parts = line.rstrip(b"\r\n").decode("utf-8").split()
            if not parts:
                continue
            self.server.commands.append(parts[0])
            cmd, args = parts[0], parts[1:]
            if cmd in ("get", "gets"):
                self._get(args, with_cas=cmd == "gets")
            elif cmd in ("set", "cas"):
                self._store(cmd, args)
            elif cmd == "delete":
                self._delete(args)
            elif cmd == "stats":
                self._stats()
            elif cmd == "version":
                self._send(f"VERSION {self.server.version}\r\n".encode())
            elif cmd == "lru_crawler":
                self._metadump()
            else:
                self._send(b"ERROR\r\n")

    def _get(self, keys: list[str], with_cas: bool) -> None:
        out = b""
        with self.server.lock:
            for key in keys:
                item = self.server.items.get(key)
                if item is None:
                    continue
                value, flags, _exp, cas = item
                header = f"VALUE {key} {flags} {len(value)}"
                if with_cas:
                    header += f" {cas}"
                out += header.encode() + b"\r\n" + value + b"\r\n"
        self._send(out + b"END\r\n")

    def _store(self, cmd: str, args: list[str]) -> None:
        key, flags, exp, size = args[0], int(args[1]), int(args[2]), int(args[3])
        token = int(args[4]) if cmd == "cas" else None
        noreply = args[-1] == "noreply"
        data = self.rfile.read(size + 2)[:size]
        exp_abs = int(time.time()) + exp if exp > 0 else 0
        with self.server.lock:
            current = self.server.items.get(key)
            if cmd == "cas":
                if current is None:
                    reply = b"NOT_FOUND\r\n"
                elif current[3] != token:
                    reply = b"EXISTS\r\n"
                else:
                    reply = None
            else:
                reply = None
            if reply is None:
                self.server.items[key] = [data, flags, exp_abs, next(self.server.cas_counter)]
                reply = b"STORED\r\n"
        if not noreply:
            self._send(reply)

    def _delete(self, args: list[str]) -> None:
        with self.server.lock:
            found = self.server.items.pop(args[0], None) is not None
        if args[-1] != "noreply":
            self._send(b"DELETED\r\n" if found else b"NOT_FOUND\r\n")

    def _stats(self) -> None:
        with self.server.lock:
            n = len(self.server.items)
            used = sum(len(v[0]) for v in self.server.items.values())
        stats = {
            "pid": "4242",
            "uptime": "3725",
            "version": self.server.version,
            "curr_connections": "2",
            "total_connections": "10",
            "curr_items": str(n),
            "total_items": str(n),
            "bytes": str(used),
            "limit_maxbytes": "67108864",
            "get_hits": "90",
            "get_misses": "10",
            "evictions": "0",
            "bytes_read": "2048",
            "bytes_written": "4096",
        }
        out = "".join(f"STAT {k} {v}\r\n" for k, v in stats.items()) + "END\r\n"
        self._send(out.encode())

    def _metadump(self) -> None:
        if self.server.metadump_error:
            self._send(f"{self.server.metadump_error}\r\n".encode())
            return
        with self.server.lock:
            items = list(self.server.items.items())
        out = ""
        for key, (value, _flags, exp_abs, cas) in items:
            exp = exp_abs if exp_abs else -1
            out += f"key={quote(key, safe='')} exp={exp} la=1700000000 cas={cas} fetch=no cls=1 size={len(value)}\r\n"
        self._send(out.encode())
        if self.server.stall_metadump:
            self.server.stop.wait(30)
            return
        self._send(b"END\r\n")


@pytest.fixture()
def memcached():
    server = FakeMemcached()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.stop.set()
        server.shutdown()
        server.server_close()


@pytest.fixture()
def memtui_home(tmp_path: Path, monkeypatch) -> Path:
    """Isolated MEMTUI_HOME for config and saved servers."""
    home = tmp_path / "MEMTUI_HOME"
    home.mkdir()
    monkeypatch.setenv("MEMTUI_HOME", str(home))
    return home


@pytest.fixture()
def env(memtui_home: Path) -> Dict[str, str]:
    """Environment dict for CliRunner.invoke with the sandboxed MEMTUI_HOME."""
    env = os.environ.copy()
    env["MEMTUI_HOME"] = str(memtui_home)
    return env

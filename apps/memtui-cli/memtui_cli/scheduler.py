"""Background command execution.

Commands run on a small thread pool; their result messages land on a
queue that the UI thread drains. For exclusive kinds (key and value
loads) a new submission cancels the previous one and the older result is
dropped when it arrives.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

from memtui_core.cancel import CancelToken

from memtui_cli.messages import Message, StatusMsg

logger = logging.getLogger(__name__)


@dataclass
class Command:
    """A unit of background work producing exactly one message."""

    kind: str
    run: Callable[[CancelToken], Message]
    timeout: Optional[float] = None
    exclusive: bool = False


class Scheduler:
    def __init__(self, max_workers: int = 4, notify: Optional[Callable[[], None]] = None):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="memtui")
        self._queue: queue.Queue[Message] = queue.Queue()
        self._lock = threading.Lock()
        self._latest: dict[str, CancelToken] = {}
        self._live: set[CancelToken] = set()
        self._closed = False
        self.notify = notify

    def submit(self, cmd: Command) -> CancelToken:
        token = CancelToken(cmd.timeout)
        with self._lock:
            if self._closed:
                token.cancel()
                return token
            if cmd.exclusive:
                prev = self._latest.get(cmd.kind)
                if prev is not None:
                    prev.cancel()
                self._latest[cmd.kind] = token
            self._live.add(token)
        logger.debug(f"Submitting {cmd.kind}")
        self._executor.submit(self._run, cmd, token)
        return token

    def _run(self, cmd: Command, token: CancelToken) -> None:
        try:
            msg = cmd.run(token)
        except Exception as e:
            logger.exception(f"Command {cmd.kind} crashed")
            msg = StatusMsg(f"{cmd.kind} failed: {e}", is_error=True)
        with self._lock:
            self._live.discard(token)
            if cmd.exclusive:
                if self._latest.get(cmd.kind) is not token:
                    logger.debug(f"Dropping stale {cmd.kind} result")
                    return
                del self._latest[cmd.kind]
            if self._closed:
                return
        self._queue.put(msg)
        if self.notify is not None:
            self.notify()

    def cancel(self, kind: str) -> None:
        with self._lock:
            token = self._latest.pop(kind, None)
        if token is not None:
            token.cancel()

    def get(self, timeout: Optional[float] = None) -> Optional[Message]:
        """Next finished message, waiting up to ``timeout`` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[Message]:
        out: list[Message] = []
        while True:
            try:
                out.append(self._queue.get_nowait())
            except queue.Empty:
                return out

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._live)

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            tokens = list(self._live)
        for t in tokens:
            t.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

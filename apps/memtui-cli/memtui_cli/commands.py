"""Command thunks: each performs one piece of IO and returns one Message.

Every thunk catches its own exceptions and reports them as an error
message; nothing raises into the scheduler.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from memtui_core.batch import batch_delete
from memtui_core.cancel import CancelToken
from memtui_core.capability import DEFAULT_PROBE_TIMEOUT
from memtui_core.capability import detect as detect_capability
from memtui_core.enumerator import DEFAULT_ENUM_TIMEOUT
from memtui_core.errors import (
    CAS_CONFLICT_MESSAGE,
    CASConflictError,
    EnumerationTimeout,
    NotFoundError,
)
from memtui_core.models import CASItem, KeyRecord, ServerCapability, ServerStats, remaining_ttl

from memtui_cli import clipboard
from memtui_cli.messages import (
    BatchDeleteResultMsg,
    ClipboardErrMsg,
    ClipboardOKMsg,
    ConnectedMsg,
    CreateErrorMsg,
    DeleteErrorMsg,
    ErrorMsg,
    KeyCreatedMsg,
    KeyDeletedMsg,
    KeysLoadedMsg,
    SaveErrorMsg,
    StatsErrorMsg,
    StatsLoadedMsg,
    ValueErrorMsg,
    ValueLoadedMsg,
    ValueSavedMsg,
)
from memtui_cli.scheduler import Command

logger = logging.getLogger(__name__)

NO_METADUMP_WARNING = (
    "Warning: Server does not support key enumeration (requires memcached >= 1.4.31). "
    "You can only work with known keys."
)

Probe = Callable[[str, float, Optional[CancelToken]], ServerCapability]


class Client(Protocol):
    """The subset of ProtocolClient the application drives."""

    def get_with_cas(self, key: str, token: CancelToken | None = None,
                     record: KeyRecord | None = None) -> CASItem: ...

    def set(self, key: str, value: bytes, flags: int = 0, ttl: int = 0,
            token: CancelToken | None = None) -> None: ...

    def compare_and_swap(self, item: CASItem, token: CancelToken | None = None) -> None: ...

    def delete(self, key: str, token: CancelToken | None = None) -> None: ...

    def server_stats(self, token: CancelToken | None = None) -> ServerStats: ...

    def metadump(self, token: CancelToken | None = None,
                 timeout: float = DEFAULT_ENUM_TIMEOUT) -> list[KeyRecord]: ...


def partial_warning(count: int) -> str:
    return f"Warning: key enumeration timed out; showing {count} keys loaded so far."


# ---------- connection ----------
def connect(addr: str, timeout: float = DEFAULT_PROBE_TIMEOUT,
            probe: Probe = detect_capability) -> Command:
    def run(token: CancelToken):
        try:
            cap = probe(addr, timeout, token)
        except Exception as e:
            logger.warning(f"Connect to {addr} failed: {e}")
            return ErrorMsg(str(e))
        return ConnectedMsg(cap.version, cap.supports_metadump)

    return Command("connect", run, exclusive=True)


def load_keys(client: Optional[Client], supports_metadump: bool,
              timeout: float = DEFAULT_ENUM_TIMEOUT) -> Command:
    def run(token: CancelToken):
        if not supports_metadump:
            return KeysLoadedMsg([], warning=NO_METADUMP_WARNING)
        if client is None:
            return ErrorMsg("client not connected")
        try:
            keys = client.metadump(token, timeout)
        except EnumerationTimeout as e:
            return KeysLoadedMsg(e.records, warning=partial_warning(len(e.records)))
        except Exception as e:
            return ErrorMsg(str(e))
        return KeysLoadedMsg(keys)

    return Command("load_keys", run, timeout=timeout, exclusive=True)


# ---------- values ----------
def load_value(client: Optional[Client], record: KeyRecord) -> Command:
    key = record.key

    def run(token: CancelToken):
        if client is None:
            return ValueErrorMsg(key, "client not connected")
        try:
            item = client.get_with_cas(key, token, record)
        except NotFoundError:
            return ValueErrorMsg(key, f"Key not found: {key}")
        except Exception as e:
            return ValueErrorMsg(key, f"failed to get value: {e}")
        return ValueLoadedMsg(item)

    return Command("load_value", run, exclusive=True)


def save_value(client: Optional[Client], key: str, value: bytes,
               cas_token: Optional[int], captured: Optional[CASItem],
               record: Optional[KeyRecord]) -> Command:
    """
    Write an edited value back. With a captured token this is a single CAS;
    without one, a plain SET. Either way the original flags are kept and the
    TTL is recomputed from the key's absolute expiration.
    """
    flags = captured.flags if captured is not None else 0

    def run(token: CancelToken):
        if client is None:
            return SaveErrorMsg(key, "client not connected")
        ttl = remaining_ttl(record.expiration_abs_unix, int(time.time())) if record else 0
        try:
            if cas_token is not None:
                client.compare_and_swap(
                    CASItem(key=key, value=value, flags=flags, expiration=ttl, cas_token=cas_token),
                    token,
                )
            else:
                client.set(key, value, flags=flags, ttl=ttl, token=token)
        except CASConflictError:
            return SaveErrorMsg(key, CAS_CONFLICT_MESSAGE, conflict=True)
        except Exception as e:
            return SaveErrorMsg(key, f"failed to save value: {e}")
        return ValueSavedMsg(key)

    return Command("save_value", run)


def create_key(client: Optional[Client], key: str, value: bytes) -> Command:
    def run(token: CancelToken):
        if client is None:
            return CreateErrorMsg(key, "client not connected")
        try:
            client.set(key, value, flags=0, ttl=0, token=token)
        except Exception as e:
            return CreateErrorMsg(key, f"failed to create key: {e}")
        return KeyCreatedMsg(key)

    return Command("create_key", run)


def delete_key(client: Optional[Client], key: str) -> Command:
    def run(token: CancelToken):
        if client is None:
            return DeleteErrorMsg(key, "client not connected")
        try:
            client.delete(key, token)
        except Exception as e:
            return DeleteErrorMsg(key, f"failed to delete key: {e}")
        return KeyDeletedMsg(key)

    return Command("delete_key", run)


def delete_keys(client: Optional[Client], keys: list[str]) -> Command:
    def run(token: CancelToken):
        return BatchDeleteResultMsg(batch_delete(client, keys, token))

    return Command("batch_delete", run)


# ---------- misc ----------
def load_stats(client: Optional[Client]) -> Command:
    def run(token: CancelToken):
        if client is None:
            return StatsErrorMsg("client not connected")
        try:
            return StatsLoadedMsg(client.server_stats(token))
        except Exception as e:
            return StatsErrorMsg(f"failed to load stats: {e}")

    return Command("load_stats", run, exclusive=True)


def copy_to_clipboard(text: str, copier: Callable[[str], str] = clipboard.copy) -> Command:
    def run(token: CancelToken):
        try:
            copier(text)
        except Exception as e:
            return ClipboardErrMsg(str(e))
        return ClipboardOKMsg()

    return Command("clipboard", run)

"""Memcached protocol client.

Basic operations go through pymemcache's PooledClient (thread-safe, one
pooled connection per in-flight call). Key enumeration and capability
probing use raw sockets, see ``enumerator`` and ``capability``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, NamedTuple, TypeVar

from pymemcache.client.base import PooledClient
from pymemcache.exceptions import (
    MemcacheClientError,
    MemcacheError,
    MemcacheIllegalInputError,
    MemcacheServerError,
)

from memtui_core import capability, enumerator
from memtui_core.cancel import CancelToken
from memtui_core.errors import (
    CASConflictError,
    ConnectError,
    MemtuiError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from memtui_core.models import CASItem, KeyRecord, ServerStats, remaining_ttl
from memtui_core.wire import parse_address

logger = logging.getLogger(__name__)

DEFAULT_OP_TIMEOUT = 10.0

T = TypeVar("T")


class StoredValue(NamedTuple):
    value: bytes
    flags: int


class RawSerde:
    """Pass bytes through untouched and surface the item flags on reads."""

    def serialize(self, key: Any, value: Any) -> tuple[bytes, int]:
        if isinstance(value, str):
            return value.encode("utf-8"), 0
        return bytes(value), 0

    def deserialize(self, key: Any, value: bytes, flags: int) -> StoredValue:
        return StoredValue(value, flags)


def _cas_int(cas: Any) -> int:
    if cas is None:
        return 0
    if isinstance(cas, bytes):
        cas = cas.decode("ascii")
    return int(cas)


class ProtocolClient:
    """
    Thread-safe memcached client used by the application core.

    Every operation accepts an optional CancelToken which is checked before
    the request goes out and again once the reply is in.
    """

    def __init__(
        self,
        addr: str,
        connect_timeout: float = 10.0,
        timeout: float = DEFAULT_OP_TIMEOUT,
        max_pool_size: int = 4,
    ):
        self.addr = addr
        self.connect_timeout = connect_timeout
        self.timeout = timeout
        host, port = parse_address(addr)
        self._client = PooledClient(
            (host, port),
            serde=RawSerde(),
            connect_timeout=connect_timeout,
            timeout=timeout,
            max_pool_size=max_pool_size,
            allow_unicode_keys=True,
            default_noreply=False,
        )

    # ---------- plumbing ----------
    def _call(self, op: str, key: str | None, fn: Callable[[], T],
              token: CancelToken | None) -> T:
        if token is not None:
            token.raise_if_cancelled()
        try:
            result = fn()
        except MemtuiError:
            raise
        except MemcacheIllegalInputError as e:
            raise ValidationError(str(e)) from e
        except (MemcacheServerError, MemcacheClientError) as e:
            raise ServerError(str(e)) from e
        except (MemcacheError, OSError) as e:
            logger.warning(f"{op} {key or ''} failed on {self.addr}: {e}")
            raise ConnectError(f"{op} failed: {e}") from e
        if token is not None:
            token.raise_if_cancelled()
        return result

    # ---------- operations ----------
    def get(self, key: str, token: CancelToken | None = None) -> bytes:
        stored = self._call("get", key, lambda: self._client.get(key), token)
        if stored is None:
            raise NotFoundError(key)
        return stored.value

    def get_with_cas(self, key: str, token: CancelToken | None = None,
                     record: KeyRecord | None = None) -> CASItem:
        """
        Read ``key`` with its CAS unique. ``record`` (from METADUMP) supplies
        the absolute expiration used to fill the remaining TTL.
        """
        stored, cas = self._call("gets", key, lambda: self._client.gets(key), token)
        if stored is None:
            raise NotFoundError(key)
        expiration = 0
        if record is not None:
            expiration = remaining_ttl(record.expiration_abs_unix, int(time.time()))
        return CASItem(
            key=key,
            value=stored.value,
            flags=stored.flags,
            expiration=expiration,
            cas_token=_cas_int(cas),
        )

    def set(self, key: str, value: bytes, flags: int = 0, ttl: int = 0,
            token: CancelToken | None = None) -> None:
        ok = self._call(
            "set", key,
            lambda: self._client.set(key, value, expire=ttl, noreply=False, flags=flags),
            token,
        )
        if not ok:
            raise ServerError(f"set {key} was not stored")
        logger.info(f"Stored {key} ({len(value)} bytes)")

    def compare_and_swap(self, item: CASItem, token: CancelToken | None = None) -> None:
        """Single ``cas`` command; stale tokens raise CASConflictError."""
        result = self._call(
            "cas", item.key,
            lambda: self._client.cas(
                item.key,
                item.value,
                item.cas_token,
                expire=item.expiration,
                noreply=False,
                flags=item.flags,
            ),
            token,
        )
        if result is None:
            raise NotFoundError(item.key)
        if result is False:
            logger.info(f"CAS conflict on {item.key}")
            raise CASConflictError(item.key)
        logger.info(f"CAS stored {item.key} ({len(item.value)} bytes)")

    def delete(self, key: str, token: CancelToken | None = None) -> None:
        deleted = self._call("delete", key, lambda: self._client.delete(key, noreply=False), token)
        if not deleted:
            raise NotFoundError(key)
        logger.info(f"Deleted {key}")

    def stats(self, token: CancelToken | None = None) -> dict[str, str]:
        raw = self._call("stats", None, self._client.stats, token)
        out: dict[str, str] = {}
        for name, value in raw.items():
            if isinstance(name, bytes):
                name = name.decode("utf-8", errors="replace")
            if isinstance(value, bytes):
                value = value.decode("utf-8", errors="replace")
            out[name] = str(value)
        return out

    def server_stats(self, token: CancelToken | None = None) -> ServerStats:
        return ServerStats.from_map(self.stats(token))

    def version(self, token: CancelToken | None = None) -> str:
        v = self._call("version", None, self._client.version, token)
        return v.decode("utf-8") if isinstance(v, bytes) else str(v)

    def metadump(self, token: CancelToken | None = None,
                 timeout: float = enumerator.DEFAULT_ENUM_TIMEOUT) -> list[KeyRecord]:
        return enumerator.enumerate_keys(
            self.addr, token=token, connect_timeout=self.connect_timeout, timeout=timeout
        )

    def detect(self, token: CancelToken | None = None):
        return capability.detect(self.addr, timeout=self.connect_timeout, token=token)

    def close(self) -> None:
        try:
            self._client.close()
        except (MemcacheError, OSError) as e:
            logger.debug(f"Error closing client for {self.addr}: {e}")

"""Error taxonomy shared by the protocol client, enumerator and UI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from memtui_core.models import KeyRecord

CAS_CONFLICT_MESSAGE = (
    "CAS conflict: value was modified by another client. Please reload and try again."
)


class MemtuiError(Exception):
    """Base class for all memtui errors."""


class ConnectError(MemtuiError):
    """Server unreachable, address malformed, or socket dropped."""


class NotFoundError(MemtuiError):
    def __init__(self, key: str):
        super().__init__(f"key not found: {key}")
        self.key = key


class CASConflictError(MemtuiError):
    """The item changed since its CAS token was issued."""

    def __init__(self, key: str):
        super().__init__(f"CAS conflict for key '{key}': item has been modified")
        self.key = key


class UnsupportedVersionError(MemtuiError):
    def __init__(self, version: str = ""):
        super().__init__(
            "memcached version 1.4.31 or later is required for lru_crawler metadump support"
        )
        self.version = version


class ServerError(MemtuiError):
    """ERROR / CLIENT_ERROR / SERVER_ERROR reply from the server."""

    def __init__(self, line: str):
        super().__init__(f"server error: {line}")
        self.line = line


class OperationCancelled(MemtuiError):
    def __init__(self, message: str = "operation cancelled"):
        super().__init__(message)


class EnumerationTimeout(MemtuiError):
    """METADUMP deadline reached. ``records`` holds what arrived before it."""

    def __init__(self, records: list[KeyRecord]):
        super().__init__(f"key enumeration timed out after {len(records)} keys")
        self.records = records


class ValidationError(MemtuiError):
    """User input rejected by a validator."""

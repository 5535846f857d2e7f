"""memtui core - memcached protocol client, enumeration, and data model."""

from memtui_core.batch import BatchDeleteResult, BatchDeleteSummary, batch_delete
from memtui_core.cancel import CancelToken
from memtui_core.capability import detect, is_version_supported, parse_version
from memtui_core.client import ProtocolClient
from memtui_core.enumerator import enumerate_keys, parse_metadump_line
from memtui_core.errors import (
    CAS_CONFLICT_MESSAGE,
    CASConflictError,
    ConnectError,
    EnumerationTimeout,
    MemtuiError,
    NotFoundError,
    OperationCancelled,
    ServerError,
    UnsupportedVersionError,
    ValidationError,
)
from memtui_core.models import (
    CASItem,
    KeyRecord,
    ServerCapability,
    ServerStats,
    filter_keys,
    remaining_ttl,
)
from memtui_core.validation import validate_batch_confirmation, validate_key

__all__ = [
    # client
    "ProtocolClient",
    "CancelToken",
    "detect",
    "parse_version",
    "is_version_supported",
    "enumerate_keys",
    "parse_metadump_line",
    # models
    "KeyRecord",
    "CASItem",
    "ServerCapability",
    "ServerStats",
    "remaining_ttl",
    "filter_keys",
    # batch / validation
    "batch_delete",
    "BatchDeleteResult",
    "BatchDeleteSummary",
    "validate_key",
    "validate_batch_confirmation",
    # errors
    "CAS_CONFLICT_MESSAGE",
    "MemtuiError",
    "ConnectError",
    "NotFoundError",
    "CASConflictError",
    "UnsupportedVersionError",
    "ServerError",
    "OperationCancelled",
    "EnumerationTimeout",
    "ValidationError",
]

__version__ = "0.1.0"

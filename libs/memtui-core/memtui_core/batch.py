"""Batch delete over a list of keys, with a user-facing summary."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from memtui_core.cancel import CancelToken
from memtui_core.errors import OperationCancelled

logger = logging.getLogger(__name__)


class Deleter(Protocol):
    def delete(self, key: str, token: CancelToken | None = None) -> None: ...


@dataclass
class BatchDeleteResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.deleted) + len(self.failed)

    def summary(self) -> BatchDeleteSummary:
        return BatchDeleteSummary(
            total=self.total,
            deleted_count=len(self.deleted),
            failed_count=len(self.failed),
            failed_keys=list(self.failed),
        )


@dataclass(frozen=True)
class BatchDeleteSummary:
    total: int
    deleted_count: int
    failed_count: int
    failed_keys: list[str] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return self.failed_count == 0

    @property
    def has_errors(self) -> bool:
        return self.failed_count > 0

    @property
    def should_refresh(self) -> bool:
        return self.deleted_count > 0

    def __str__(self) -> str:
        if self.total == 0:
            return "No keys to delete"
        if self.all_succeeded:
            if self.deleted_count == 1:
                return "Successfully deleted 1 key"
            return f"Successfully deleted {self.deleted_count} keys"
        if self.deleted_count == 0:
            if self.failed_count == 1:
                return "Failed to delete 1 key"
            return f"Failed to delete all {self.failed_count} keys"
        return f"Deleted {self.deleted_count} keys, {self.failed_count} failed"


def batch_delete(client: Deleter | None, keys: list[str],
                 token: CancelToken | None = None) -> BatchDeleteResult:
    """
    Delete ``keys`` in order. Every key lands in exactly one of
    ``deleted``/``failed``; a cancelled token fails the remainder.
    """
    result = BatchDeleteResult()
    if client is None:
        for k in keys:
            result.failed.append(k)
            result.errors[k] = "not connected"
        return result

    for k in keys:
        if token is not None and token.cancelled:
            result.failed.append(k)
            result.errors[k] = str(OperationCancelled())
            continue
        try:
            client.delete(k, token)
        except Exception as e:
            result.failed.append(k)
            result.errors[k] = str(e)
            logger.warning(f"Batch delete failed for {k}: {e}")
        else:
            result.deleted.append(k)
    logger.info(f"Batch delete: {len(result.deleted)} deleted, {len(result.failed)} failed")
    return result

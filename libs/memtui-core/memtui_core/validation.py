"""Input validators for key names and destructive-action confirmations."""

from __future__ import annotations

import unicodedata

from memtui_core.errors import ValidationError

MAX_KEY_LENGTH = 250
BATCH_DELETE_CONFIRMATION = "DELETE"


def validate_key(key: str) -> None:
    """Raise ValidationError if ``key`` is not a legal memcached key."""
    if not key:
        raise ValidationError("key cannot be empty")

    size = len(key.encode("utf-8"))
    if size > MAX_KEY_LENGTH:
        raise ValidationError(f"key cannot exceed {MAX_KEY_LENGTH} bytes (got {size})")

    for i, ch in enumerate(key):
        if ch == " ":
            raise ValidationError("key cannot contain spaces")
        if ch in "\n\r":
            raise ValidationError("key cannot contain newlines")
        if unicodedata.category(ch) == "Cc":
            raise ValidationError(f"key cannot contain control characters (found at position {i})")

    # Remaining Unicode whitespace (NBSP, ideographic space, ...)
    for ch in key:
        if ch.isspace():
            raise ValidationError("key cannot contain whitespace characters")


def validate_batch_confirmation(text: str) -> None:
    if text != BATCH_DELETE_CONFIRMATION:
        raise ValidationError("type DELETE (all caps) to confirm")


def key_error(key: str) -> str | None:
    """Validator adapter for dialogs: the error text, or None when valid."""
    try:
        validate_key(key)
    except ValidationError as e:
        return str(e)
    return None


def batch_confirmation_error(text: str) -> str | None:
    try:
        validate_batch_confirmation(text)
    except ValidationError as e:
        return str(e)
    return None

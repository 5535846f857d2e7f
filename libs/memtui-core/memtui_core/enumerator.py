"""Key enumeration via ``lru_crawler metadump all``.

The crawler streams one line per item::

    key=user%3A1 exp=-1 la=1700000000 cas=12 fetch=no cls=1 size=64
    ...
    END

Keys are percent-encoded by the server and decoded here.
"""

from __future__ import annotations

import logging
from typing import Iterator
from urllib.parse import unquote

from memtui_core.cancel import CancelToken
from memtui_core.errors import EnumerationTimeout, OperationCancelled, ServerError
from memtui_core.models import KeyRecord
from memtui_core.wire import LineReader, open_connection, send_command

logger = logging.getLogger(__name__)

DEFAULT_ENUM_TIMEOUT = 30.0
METADUMP_COMMAND = "lru_crawler metadump all"

_ERROR_PREFIXES = ("ERROR", "CLIENT_ERROR", "SERVER_ERROR", "BUSY")


def _int_field(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_metadump_line(line: str) -> KeyRecord | None:
    """
    Parse one METADUMP line. Returns None for lines without a ``key`` field.
    Unknown fields are ignored; bad numbers become 0.
    """
    fields: dict[str, str] = {}
    for part in line.split():
        name, sep, value = part.partition("=")
        if sep:
            fields[name] = value

    raw_key = fields.get("key")
    if not raw_key:
        return None

    exp = _int_field(fields.get("exp", "0"))
    return KeyRecord(
        key=unquote(raw_key),
        expiration_abs_unix=max(exp, 0),
        last_access_unix=_int_field(fields.get("la", "0")),
        cas_token=_int_field(fields.get("cas", "0")),
        fetched=fields.get("fetch") == "yes",
        slab_class=_int_field(fields.get("cls", "0")),
        size_bytes=_int_field(fields.get("size", "0")),
    )


def iter_metadump(lines: Iterator[str]) -> Iterator[KeyRecord]:
    """Yield records from decoded METADUMP lines until ``END``."""
    for line in lines:
        if line == "END":
            return
        if not line:
            continue
        if line.startswith(_ERROR_PREFIXES):
            raise ServerError(line)
        rec = parse_metadump_line(line)
        if rec is None:
            logger.debug(f"Skipping malformed metadump line: {line!r}")
            continue
        yield rec


def _socket_lines(reader: LineReader) -> Iterator[str]:
    while True:
        yield reader.readline().decode("utf-8", errors="replace")


def enumerate_keys(
    addr: str,
    token: CancelToken | None = None,
    connect_timeout: float = 10.0,
    timeout: float = DEFAULT_ENUM_TIMEOUT,
) -> list[KeyRecord]:
    """
    Stream all key records from ``addr``.

    On deadline, raises EnumerationTimeout carrying the records read so far.
    An explicit cancel raises OperationCancelled. Duplicates keep the first
    occurrence.
    """
    token = token or CancelToken(timeout)
    records: list[KeyRecord] = []
    seen: set[str] = set()

    sock = open_connection(addr, connect_timeout)
    try:
        send_command(sock, METADUMP_COMMAND)
        reader = LineReader(sock, token)
        for rec in iter_metadump(_socket_lines(reader)):
            if rec.key in seen:
                continue
            seen.add(rec.key)
            records.append(rec)
    except OperationCancelled as e:
        if token.expired:
            logger.warning(f"Key enumeration timed out with {len(records)} keys")
            raise EnumerationTimeout(records) from e
        raise
    finally:
        sock.close()

    logger.info(f"Enumerated {len(records)} keys from {addr}")
    return records

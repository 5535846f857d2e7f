"""Core data models for memtui."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

MAX_INT32 = 2**31 - 1


@dataclass(frozen=True)
class KeyRecord:
    """One METADUMP record. ``expiration_abs_unix == 0`` means no expiration."""

    key: str
    expiration_abs_unix: int = 0
    last_access_unix: int = 0
    cas_token: int = 0
    fetched: bool = False
    slab_class: int = 0
    size_bytes: int = 0

    def is_expired_at(self, now: int) -> bool:
        return self.expiration_abs_unix > 0 and self.expiration_abs_unix <= now

    def remaining_ttl(self, now: int) -> int:
        return remaining_ttl(self.expiration_abs_unix, now)


@dataclass
class CASItem:
    """A value read with GET-WITH-CAS; ``expiration`` is remaining seconds."""

    key: str
    value: bytes
    flags: int = 0
    expiration: int = 0
    cas_token: int = 0

    def copy(self) -> CASItem:
        return CASItem(self.key, bytes(self.value), self.flags, self.expiration, self.cas_token)


def remaining_ttl(exp_abs: int, now: int) -> int:
    """Remaining seconds until ``exp_abs``; 0 for no expiration or already expired."""
    if exp_abs == 0 or exp_abs <= now:
        return 0
    return min(exp_abs - now, MAX_INT32)


def filter_keys(records: list[KeyRecord], pattern: str) -> list[KeyRecord]:
    """Case-sensitive substring filter; an empty pattern returns everything."""
    if not pattern:
        return list(records)
    return [r for r in records if pattern in r.key]


def format_ttl(seconds: int) -> str:
    if seconds <= 0:
        return "-"
    return format_duration(seconds)


def format_duration(seconds: int) -> str:
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    if days > 0:
        return f"{days}d {hours}h {minutes}m {seconds}s"
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_bytes(n: int) -> str:
    kb = 1024
    mb = kb * 1024
    gb = mb * 1024
    if n >= gb:
        return f"{n / gb:.2f} GB"
    if n >= mb:
        return f"{n / mb:.2f} MB"
    if n >= kb:
        return f"{n / kb:.2f} KB"
    return f"{n} B"


# ---------- server statistics ----------
def _to_int(value: str | None) -> int:
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0


class ServerStats(BaseModel):
    """Headline numbers from the STATS command plus the raw map."""

    pid: int = 0
    uptime: int = Field(default=0, description="Seconds since server start")
    version: str = ""
    curr_connections: int = 0
    total_connections: int = 0
    curr_items: int = 0
    total_items: int = 0
    bytes: int = Field(default=0, description="Bytes used for item storage")
    limit_maxbytes: int = 0
    get_hits: int = 0
    get_misses: int = 0
    evictions: int = 0
    bytes_read: int = 0
    bytes_written: int = 0
    raw: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_map(cls, stats: dict[str, str]) -> ServerStats:
        numeric = {
            name: _to_int(stats.get(name))
            for name, info in cls.model_fields.items()
            if info.annotation is int
        }
        return cls(version=stats.get("version", ""), raw=dict(stats), **numeric)

    @property
    def hit_rate(self) -> float:
        total = self.get_hits + self.get_misses
        if total == 0:
            return 0.0
        return self.get_hits / total * 100

    @property
    def memory_usage(self) -> float:
        if self.limit_maxbytes == 0:
            return 0.0
        return self.bytes / self.limit_maxbytes * 100

    @property
    def uptime_formatted(self) -> str:
        return format_duration(self.uptime)


def parse_stats_lines(lines: list[str]) -> dict[str, str]:
    """Parse ``STAT name value`` lines into a map, ignoring anything else."""
    out: dict[str, str] = {}
    for line in lines:
        parts = line.strip().split(" ", 2)
        if len(parts) == 3 and parts[0] == "STAT":
            out[parts[1]] = parts[2]
    return out


@dataclass
class ServerCapability:
    version: str
    supports_metadump: bool
    stats: dict[str, str] = field(default_factory=dict)

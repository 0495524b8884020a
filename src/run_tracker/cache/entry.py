"""
Cache entry envelope.

Every cached value is wrapped with the time it was written, an optional
expiry and the schema version it was written with. Expiry is lazy: dead
entries are skipped by readers and overwritten by the next write, never
deleted eagerly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

from ..errors import CorruptCacheError
from ..types import AgentRun, TrackedRun, format_timestamp, parse_timestamp

T = TypeVar("T")

SCHEMA_VERSION = 1


@dataclass
class CacheEntry(Generic[T]):
    """Envelope around a cached value."""

    data: T
    timestamp: datetime
    expires_at: datetime | None = None
    schema_version: int = SCHEMA_VERSION

    def is_live(self, now: datetime) -> bool:
        """An entry is live until its expiry; entries without one never expire."""
        return self.expires_at is None or self.expires_at > now

    def _envelope(self, encode: Callable[[T], Any]) -> dict[str, Any]:
        return {
            "data": encode(self.data),
            "timestamp": format_timestamp(self.timestamp),
            "expires_at": format_timestamp(self.expires_at) if self.expires_at else None,
            "schema_version": self.schema_version,
        }

    @staticmethod
    def _unwrap(raw: dict[str, Any]) -> tuple[datetime, datetime | None, int]:
        schema_version = int(raw.get("schema_version", 0))
        if schema_version != SCHEMA_VERSION:
            raise ValueError(f"unsupported schema version {schema_version}")
        expires_at = raw.get("expires_at")
        return (
            parse_timestamp(raw["timestamp"]),
            parse_timestamp(expires_at) if expires_at else None,
            schema_version,
        )


@dataclass
class RunCacheEntry(CacheEntry[AgentRun]):
    """Cached AgentRun plus the polling hint derived at write time."""

    organization_id: int = 0
    needs_polling: bool = False

    def to_dict(self) -> dict[str, Any]:
        d = self._envelope(lambda run: run.to_dict())
        d["organization_id"] = self.organization_id
        d["needs_polling"] = self.needs_polling
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> RunCacheEntry:
        timestamp, expires_at, version = cls._unwrap(raw)
        return cls(
            data=AgentRun.from_dict(raw["data"]),
            timestamp=timestamp,
            expires_at=expires_at,
            schema_version=version,
            organization_id=int(raw.get("organization_id", 0)),
            needs_polling=bool(raw.get("needs_polling", False)),
        )


@dataclass
class TrackedRunCacheEntry(CacheEntry[TrackedRun]):
    """Tracked-run record. Never expires; removed by cleanup instead."""

    def to_dict(self) -> dict[str, Any]:
        return self._envelope(lambda tracked: tracked.to_dict())

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TrackedRunCacheEntry:
        timestamp, expires_at, version = cls._unwrap(raw)
        return cls(
            data=TrackedRun.from_dict(raw["data"]),
            timestamp=timestamp,
            expires_at=expires_at,
            schema_version=version,
        )


def decode_blob(raw: str, key: str) -> Any:
    """Parse a stored JSON blob, raising CorruptCacheError on failure."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise CorruptCacheError(f"Cannot decode blob at {key}", key=key, cause=exc) from exc


def decode_entries(raw: str, key: str, factory: Callable[[dict[str, Any]], T]) -> list[T]:
    """Parse a JSON list of envelopes. Any malformed element corrupts the blob."""
    parsed = decode_blob(raw, key)
    if not isinstance(parsed, list):
        raise CorruptCacheError(f"Expected a list at {key}", key=key)
    if not all(isinstance(item, dict) for item in parsed):
        raise CorruptCacheError(f"Expected a list of objects at {key}", key=key)
    try:
        return [factory(item) for item in parsed]
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptCacheError(f"Malformed entry at {key}", key=key, cause=exc) from exc


def decode_entry(raw: str, key: str, factory: Callable[[dict[str, Any]], T]) -> T:
    parsed = decode_blob(raw, key)
    if not isinstance(parsed, dict):
        raise CorruptCacheError(f"Expected an object at {key}", key=key)
    try:
        return factory(parsed)
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptCacheError(f"Malformed entry at {key}", key=key, cause=exc) from exc


__all__ = [
    "SCHEMA_VERSION",
    "CacheEntry",
    "RunCacheEntry",
    "TrackedRunCacheEntry",
    "decode_blob",
    "decode_entries",
    "decode_entry",
]

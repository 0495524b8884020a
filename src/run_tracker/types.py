"""
Core types for run tracking.

This module defines the RunStatus enum and the records that flow through
the cache, the tracking registry and the notification pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        # fromisoformat() only learned the "Z" suffix in 3.11
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


class RunStatus(str, Enum):
    """Lifecycle states reported by the remote agent API.

    Terminal states never change again. ACTIVE and EVALUATION are the
    states worth re-polling.
    """
    ACTIVE = "ACTIVE"
    EVALUATION = "EVALUATION"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"
    MAX_ITERATIONS_REACHED = "MAX_ITERATIONS_REACHED"
    OUT_OF_TOKENS = "OUT_OF_TOKENS"
    FAILED = "FAILED"
    PAUSED = "PAUSED"
    PENDING = "PENDING"

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in TERMINAL_STATUSES

    @property
    def needs_polling(self) -> bool:
        """Check if a run in this state can still change soon."""
        return self in POLLING_STATUSES


TERMINAL_STATUSES: frozenset[RunStatus] = frozenset({
    RunStatus.COMPLETE,
    RunStatus.ERROR,
    RunStatus.CANCELLED,
    RunStatus.TIMEOUT,
    RunStatus.MAX_ITERATIONS_REACHED,
    RunStatus.OUT_OF_TOKENS,
})

POLLING_STATUSES: frozenset[RunStatus] = frozenset({
    RunStatus.ACTIVE,
    RunStatus.EVALUATION,
})


def is_terminal_status(status: str | None) -> bool:
    """Like RunStatus.is_terminal, but tolerant of unknown status strings."""
    return status is not None and status in {s.value for s in TERMINAL_STATUSES}


def needs_polling(status: str | None) -> bool:
    return status is not None and status in {s.value for s in POLLING_STATUSES}


class SyncStatus(str, Enum):
    """Per-organization synchronization state."""
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


def _status_value(status: Any) -> str:
    if isinstance(status, RunStatus):
        return status.value
    return str(status)


@dataclass
class AgentRun:
    """Snapshot of a remote agent run.

    Only ``status`` and ``result`` change between refreshes, and they are
    always replaced wholesale by the latest fetch.
    """
    id: int
    organization_id: int
    status: str
    created_at: datetime
    web_url: str = ""
    result: str | None = None

    def __post_init__(self) -> None:
        self.status = _status_value(self.status)
        self.created_at = parse_timestamp(self.created_at)

    @property
    def run_status(self) -> RunStatus | None:
        """The status as a RunStatus, or None for statuses we don't know."""
        try:
            return RunStatus(self.status)
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    @property
    def needs_polling(self) -> bool:
        return needs_polling(self.status)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the remote API's field names."""
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "status": self.status,
            "created_at": format_timestamp(self.created_at),
            "web_url": self.web_url,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentRun:
        return cls(
            id=int(data["id"]),
            organization_id=int(data["organization_id"]),
            status=data.get("status") or "UNKNOWN",
            created_at=data["created_at"],
            web_url=data.get("web_url") or "",
            result=data.get("result"),
        )


@dataclass
class TrackedRun:
    """A run the user explicitly opted into monitoring.

    ``last_known_status`` is None only until the first observation.
    """
    id: int
    organization_id: int
    last_known_status: str | None
    created_at: datetime
    web_url: str
    added_at: datetime

    def __post_init__(self) -> None:
        if self.last_known_status is not None:
            self.last_known_status = _status_value(self.last_known_status)
        self.created_at = parse_timestamp(self.created_at)
        self.added_at = parse_timestamp(self.added_at)

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.last_known_status)

    def with_status(self, status: str) -> TrackedRun:
        """Create a new TrackedRun with the last known status replaced."""
        return TrackedRun(
            id=self.id,
            organization_id=self.organization_id,
            last_known_status=status,
            created_at=self.created_at,
            web_url=self.web_url,
            added_at=self.added_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "last_known_status": self.last_known_status,
            "created_at": format_timestamp(self.created_at),
            "web_url": self.web_url,
            "added_at": format_timestamp(self.added_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackedRun:
        return cls(
            id=int(data["id"]),
            organization_id=int(data["organization_id"]),
            last_known_status=data.get("last_known_status"),
            created_at=data["created_at"],
            web_url=data.get("web_url") or "",
            added_at=data["added_at"],
        )


@dataclass
class SyncState:
    """Outcome of the latest sync for one organization."""
    status: SyncStatus = SyncStatus.IDLE
    last_sync: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "last_sync": format_timestamp(self.last_sync) if self.last_sync else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncState:
        last_sync = data.get("last_sync")
        return cls(
            status=SyncStatus(data.get("status", "idle")),
            last_sync=parse_timestamp(last_sync) if last_sync else None,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class StatusChange:
    """A detected status transition. Consumed immediately, never persisted."""
    agent_run_id: int
    organization_id: int
    old_status: str | None
    new_status: str
    timestamp: datetime = field(default_factory=utc_now)
    web_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_run_id": self.agent_run_id,
            "organization_id": self.organization_id,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "timestamp": format_timestamp(self.timestamp),
            "web_url": self.web_url,
        }


__all__ = [
    "Clock",
    "utc_now",
    "parse_timestamp",
    "format_timestamp",
    "RunStatus",
    "TERMINAL_STATUSES",
    "POLLING_STATUSES",
    "is_terminal_status",
    "needs_polling",
    "SyncStatus",
    "AgentRun",
    "TrackedRun",
    "SyncState",
    "StatusChange",
]

"""
Shared test fixtures and fakes for run-tracker tests.

This module provides:
- A scriptable fake job source
- A recording notifier
- A frozen, manually advanced clock
- Run factories and an in-memory store
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import pytest

from run_tracker.cache import KeyIndex, RunCache
from run_tracker.errors import NotFoundError, TransportError
from run_tracker.notifications import Severity
from run_tracker.storage import InMemoryStore
from run_tracker.tracking import StatusChangeDetector, TrackedRunRegistry
from run_tracker.types import AgentRun

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Factories
# =============================================================================


def make_run(
    id: int = 42,
    status: str = "ACTIVE",
    organization_id: int = 7,
    created_at: datetime | None = None,
    result: str | None = None,
) -> AgentRun:
    """Create an AgentRun with sensible defaults."""
    return AgentRun(
        id=id,
        organization_id=organization_id,
        status=status,
        created_at=created_at or T0,
        web_url=f"https://codegen.com/agent/trace/{id}",
        result=result,
    )


# =============================================================================
# Fakes
# =============================================================================


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeJobSource:
    """In-memory job source.

    ``runs`` maps run id to the snapshot returned by ``fetch_run``; ids in
    ``failing`` raise a TransportError, unknown ids raise NotFoundError.
    """

    def __init__(self, *runs: AgentRun):
        self.runs: dict[int, AgentRun] = {run.id: run for run in runs}
        self.failing: set[int] = set()
        self.calls: list[tuple[int, int]] = []

    def set_status(self, run_id: int, status: str, result: str | None = None) -> None:
        run = self.runs[run_id]
        self.runs[run_id] = AgentRun(
            id=run.id,
            organization_id=run.organization_id,
            status=status,
            created_at=run.created_at,
            web_url=run.web_url,
            result=result if result is not None else run.result,
        )

    async def fetch_run(self, organization_id: int, run_id: int) -> AgentRun:
        self.calls.append((organization_id, run_id))
        if run_id in self.failing:
            raise TransportError(f"connection reset fetching {run_id}")
        if run_id not in self.runs:
            raise NotFoundError(f"run {run_id} not found")
        return self.runs[run_id]


@dataclass
class RecordingNotifier:
    """Notifier that remembers what it was asked to deliver."""

    sent: list[tuple[str, str, Severity]] = field(default_factory=list)
    fail: bool = False

    async def notify(self, title: str, message: str, severity: Severity) -> None:
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append((title, message, severity))

    @property
    def titles(self) -> list[str]:
        return [title for title, _, _ in self.sent]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store():
    return InMemoryStore(namespace="test")


@pytest.fixture
def index(store):
    return KeyIndex(store)


@pytest.fixture
def run_cache(store, clock):
    return RunCache(store, clock=clock)


@pytest.fixture
def registry(store, index, clock):
    return TrackedRunRegistry(store, index, clock=clock)


@pytest.fixture
def source():
    return FakeJobSource()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def detector(registry, source, run_cache, clock):
    return StatusChangeDetector(registry, lambda: source, run_cache=run_cache, clock=clock)

"""
Filtering, searching and sorting of cached run lists.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from .types import AgentRun, RunStatus

SortField = Literal["created_at", "status", "organization_id"]

STATUS_LABELS: dict[str, str] = {
    RunStatus.ACTIVE.value: "Active",
    RunStatus.COMPLETE.value: "Complete",
    RunStatus.FAILED.value: "Failed",
    RunStatus.PAUSED.value: "Paused",
    RunStatus.PENDING.value: "Pending",
    RunStatus.ERROR.value: "Error",
    RunStatus.EVALUATION.value: "Evaluation",
    RunStatus.CANCELLED.value: "Cancelled",
    RunStatus.TIMEOUT.value: "Timeout",
    RunStatus.MAX_ITERATIONS_REACHED.value: "Max Iterations",
    RunStatus.OUT_OF_TOKENS.value: "Out of Tokens",
}


@dataclass
class RunFilters:
    """Filter criteria for run lists. Unset fields match everything."""

    statuses: set[str] | None = None
    organization_id: int | None = None
    start: datetime | None = None
    end: datetime | None = None
    search_query: str | None = None

    def matches(self, run: AgentRun) -> bool:
        if self.statuses and run.status not in self.statuses:
            return False
        if self.organization_id is not None and run.organization_id != self.organization_id:
            return False
        if self.start is not None and run.created_at < self.start:
            return False
        if self.end is not None and run.created_at > self.end:
            return False
        if self.search_query and self.search_query.strip():
            if not search_run(run, self.search_query):
                return False
        return True


@dataclass
class SortOptions:
    field: SortField = "created_at"
    descending: bool = True


def search_run(run: AgentRun, query: str) -> bool:
    """Case-insensitive substring search over id, status and result."""
    haystack = " ".join([str(run.id), run.status, run.result or ""]).lower()
    return query.strip().lower() in haystack


def filter_runs(runs: list[AgentRun], filters: RunFilters) -> list[AgentRun]:
    return [run for run in runs if filters.matches(run)]


def sort_runs(runs: list[AgentRun], options: SortOptions | None = None) -> list[AgentRun]:
    """Stable sort by one field. Defaults to newest first."""
    options = options or SortOptions()
    if options.field == "status":
        key = lambda run: run.status  # noqa: E731
    elif options.field == "organization_id":
        key = lambda run: run.organization_id  # noqa: E731
    else:
        key = lambda run: run.created_at  # noqa: E731
    return sorted(runs, key=key, reverse=options.descending)


def status_counts(runs: list[AgentRun]) -> list[tuple[str, int, str]]:
    """``(status, count, label)`` for every status present, most common first."""
    counts = Counter(run.status for run in runs)
    return [
        (status, count, STATUS_LABELS.get(status, status.replace("_", " ").title()))
        for status, count in counts.most_common()
    ]


def date_ranges(now: datetime) -> dict[str, tuple[datetime, datetime]]:
    """Named ``(start, end)`` ranges relative to ``now``, for use with RunFilters.

    Weeks start on Sunday.
    """
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    month_start = today.replace(day=1)
    last_month_end = month_start - timedelta(days=1)
    return {
        "today": (today, now),
        "yesterday": (today - timedelta(days=1), today),
        "this_week": (week_start, now),
        "last_week": (week_start - timedelta(days=7), week_start - timedelta(days=1)),
        "this_month": (month_start, now),
        "last_month": (last_month_end.replace(day=1), last_month_end),
        "last_30_days": (today - timedelta(days=30), now),
    }


__all__ = [
    "STATUS_LABELS",
    "RunFilters",
    "SortOptions",
    "SortField",
    "search_run",
    "filter_runs",
    "sort_runs",
    "status_counts",
    "date_ranges",
]

"""
Status-change detection for tracked runs.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from ..cache.runs import RunCache
from ..client import JobSource, JobSourceFactory
from ..errors import ErrorContext, OrchestrationError
from ..types import AgentRun, Clock, StatusChange, TrackedRun, utc_now
from .registry import TrackedRunRegistry

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_AFTER = timedelta(hours=24)


class StatusChangeDetector:
    """Compares fresh remote snapshots against each tracked run's last known status.

    Fetches for one organization fan out concurrently; the comparison and
    the registry write happen afterwards in registry order, one run at a
    time, so each emitted change has already been recorded before the next
    one is considered.

    Example:
        ```python
        detector = StatusChangeDetector(registry, lambda: client, run_cache=cache)
        for change in await detector.check_for_status_changes(7):
            print(change.agent_run_id, change.old_status, "->", change.new_status)
        ```
    """

    def __init__(
        self,
        registry: TrackedRunRegistry,
        source_factory: JobSourceFactory,
        *,
        run_cache: RunCache | None = None,
        clock: Clock = utc_now,
        cleanup_after: timedelta = DEFAULT_CLEANUP_AFTER,
        max_concurrent_fetches: int = 8,
    ):
        self._registry = registry
        self._source_factory = source_factory
        self._run_cache = run_cache
        self._clock = clock
        self._cleanup_after = cleanup_after
        self._max_concurrent_fetches = max_concurrent_fetches

    def _source(self, organization_id: int) -> JobSource:
        try:
            return self._source_factory()
        except Exception as exc:
            raise OrchestrationError(
                f"Cannot construct job source: {exc}",
                context=ErrorContext(organization_id=organization_id, operation="check"),
                cause=exc,
            ) from exc

    async def check_for_status_changes(self, organization_id: int) -> list[StatusChange]:
        """Emit one StatusChange per tracked run whose status moved.

        Runs that fail to fetch are logged and skipped; they are retried on
        the next pass.

        Raises:
            OrchestrationError: If the job source cannot be constructed.
        """
        tracked_runs = await self._registry.get_tracked_runs(organization_id)
        if not tracked_runs:
            return []

        source = self._source(organization_id)
        fetched = await self._fetch_all(source, organization_id, tracked_runs)

        changes: list[StatusChange] = []
        fresh: list[AgentRun] = []
        for tracked, current in zip(tracked_runs, fetched):
            if current is None:
                continue
            fresh.append(current)
            if current.status == tracked.last_known_status:
                continue
            change = StatusChange(
                agent_run_id=tracked.id,
                organization_id=organization_id,
                old_status=tracked.last_known_status,
                new_status=current.status,
                timestamp=self._clock(),
                web_url=current.web_url or tracked.web_url,
            )
            await self._registry.update_status(organization_id, tracked.id, current.status)
            changes.append(change)
            logger.info(
                "Run %s in org %s: %s -> %s",
                tracked.id,
                organization_id,
                change.old_status,
                change.new_status,
            )

        await self._write_through(organization_id, fresh)
        return changes

    async def _fetch_all(
        self,
        source: JobSource,
        organization_id: int,
        tracked_runs: list[TrackedRun],
    ) -> list[AgentRun | None]:
        semaphore = asyncio.Semaphore(self._max_concurrent_fetches)

        async def fetch(tracked: TrackedRun) -> AgentRun | None:
            async with semaphore:
                try:
                    return await source.fetch_run(organization_id, tracked.id)
                except Exception as exc:
                    logger.warning(
                        "Failed to fetch run %s in org %s: %s", tracked.id, organization_id, exc
                    )
                    return None

        return list(await asyncio.gather(*(fetch(t) for t in tracked_runs)))

    async def _write_through(self, organization_id: int, runs: list[AgentRun]) -> None:
        if self._run_cache is None or not runs:
            return
        try:
            await self._run_cache.merge_runs(organization_id, runs)
        except Exception as exc:
            logger.warning("Failed to update run cache for org %s: %s", organization_id, exc)

    async def cleanup_completed_runs(self, organization_id: int) -> list[int]:
        """Stop tracking terminal runs added more than ``cleanup_after`` ago.

        Returns:
            Ids of the runs that were removed.
        """
        now = self._clock()
        removed = []
        for tracked in await self._registry.get_tracked_runs(organization_id):
            if tracked.is_terminal and now - tracked.added_at > self._cleanup_after:
                await self._registry.remove(organization_id, tracked.id)
                removed.append(tracked.id)
        if removed:
            logger.info("Stopped tracking %d finished runs in org %s", len(removed), organization_id)
        return removed


__all__ = ["StatusChangeDetector", "DEFAULT_CLEANUP_AFTER"]

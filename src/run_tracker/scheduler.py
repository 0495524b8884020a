"""
Periodic monitoring of tracked runs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from .logging import PassLog, StructuredLogger, get_logger, timed
from .notifications.notifier import NotificationDispatcher
from .sync import SyncEngine
from .tracking.detector import StatusChangeDetector
from .tracking.registry import TrackedRunRegistry
from .types import StatusChange

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0


@dataclass
class PassResult:
    """What one monitoring pass did."""

    organizations: list[int] = field(default_factory=list)
    changes: list[StatusChange] = field(default_factory=list)
    notifications: int = 0
    removed: dict[int, list[int]] = field(default_factory=dict)
    failed_organizations: list[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_organizations

    def to_dict(self) -> dict[str, Any]:
        return {
            "organizations": list(self.organizations),
            "changes": [c.to_dict() for c in self.changes],
            "notifications": self.notifications,
            "removed": {str(org): ids for org, ids in self.removed.items()},
            "failed_organizations": list(self.failed_organizations),
        }


class MonitorScheduler:
    """Drives monitoring passes on a fixed interval.

    ``start()`` runs a pass immediately and then one every
    ``poll_interval`` seconds. ``stop()`` guarantees no further pass starts;
    a pass already in flight runs to completion.

    One pass, per tracked organization: detect status changes, dispatch
    each through the notification policy, then clean up finished runs. A
    failing organization is logged and skipped.

    Example:
        ```python
        scheduler = MonitorScheduler(registry, detector, dispatcher, poll_interval=30)
        scheduler.start()
        ...
        await scheduler.stop()
        ```
    """

    def __init__(
        self,
        registry: TrackedRunRegistry,
        detector: StatusChangeDetector,
        dispatcher: NotificationDispatcher,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sync_engine: SyncEngine | None = None,
        sync_on_pass: bool = False,
        structured_logger: StructuredLogger | None = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self._registry = registry
        self._detector = detector
        self._dispatcher = dispatcher
        self._poll_interval = poll_interval
        self._sync_engine = sync_engine
        self._sync_on_pass = sync_on_pass and sync_engine is not None
        self._log = structured_logger

        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()
        self._pass_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def structured_logger(self) -> StructuredLogger:
        if self._log is None:
            self._log = get_logger()
        return self._log

    def start(self) -> None:
        """Start the periodic loop. Must be called with a running event loop."""
        if self.is_running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("Monitoring started (every %ss)", self._poll_interval)

    async def stop(self) -> None:
        """Stop scheduling passes and wait for an in-flight pass to finish."""
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
            logger.info("Monitoring stopped")

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.run_pass()
            except Exception as exc:
                self.structured_logger.log_error(exc, "Monitoring pass failed")
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass

    async def run_pass(self) -> PassResult:
        """Run one pass over every tracked organization."""
        async with self._pass_lock:
            result = PassResult()
            with self.structured_logger.trace_context(operation="pass"), timed() as timer:
                result.organizations = await self._registry.tracked_organizations()
                for organization_id in result.organizations:
                    try:
                        await self._run_organization(organization_id, result)
                    except Exception as exc:
                        result.failed_organizations.append(organization_id)
                        self.structured_logger.log_error(
                            exc,
                            f"Monitoring failed for organization {organization_id}",
                            organization_id=organization_id,
                        )

            self.structured_logger.log_pass(PassLog(
                organizations=len(result.organizations),
                changes=len(result.changes),
                notifications=result.notifications,
                failed_organizations=result.failed_organizations,
                duration_ms=timer.elapsed_ms,
            ))
            return result

    async def _run_organization(self, organization_id: int, result: PassResult) -> None:
        changes = await self._detector.check_for_status_changes(organization_id)
        result.changes.extend(changes)
        for change in changes:
            if await self._dispatcher.dispatch(change):
                result.notifications += 1

        removed = await self._detector.cleanup_completed_runs(organization_id)
        if removed:
            result.removed[organization_id] = removed

        if self._sync_on_pass:
            assert self._sync_engine is not None
            await self._sync_engine.sync_runs(organization_id)


__all__ = ["MonitorScheduler", "PassResult", "DEFAULT_POLL_INTERVAL"]

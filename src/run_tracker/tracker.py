"""
RunTracker: the assembled monitoring service.

Builds the store, caches, detector, sync engine, dispatcher and scheduler
from ``Settings`` and exposes the operations a client application needs.
Everything is constructed explicitly; nothing here is a process global.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any
from urllib.parse import urlparse

from .cache.index import KeyIndex
from .cache.runs import RunCache
from .client import AgentRunAPIClient, JobSource, JobSourceFactory
from .config.settings import Settings
from .errors import ErrorContext, InvalidRunReferenceError, OrchestrationError
from .filtering import RunFilters, SortOptions, filter_runs, sort_runs
from .logging import StructuredLogger, configure_logging
from .notifications.notifier import LoggingNotifier, NotificationDispatcher, Notifier
from .scheduler import MonitorScheduler, PassResult
from .storage.base import KeyValueStore
from .storage.factory import build_store
from .sync import SyncEngine
from .tracking.detector import StatusChangeDetector
from .tracking.registry import TrackedRunRegistry
from .types import AgentRun, Clock, SyncState, TrackedRun, utc_now

logger = logging.getLogger(__name__)


def parse_run_reference(reference: str | int) -> int:
    """
    Extract a run id from a bare id or a run's web URL.

    Accepts ``42``, ``"42"``, ``"#42"`` or a URL whose last numeric path
    segment is the id, e.g. ``https://codegen.com/agent/trace/42``.

    Raises:
        InvalidRunReferenceError: If no run id can be found.
    """
    if isinstance(reference, int):
        if reference <= 0:
            raise InvalidRunReferenceError(f"Invalid run id: {reference}")
        return reference

    text = reference.strip().lstrip("#")
    if text.isdigit():
        return parse_run_reference(int(text))

    parsed = urlparse(text)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        for segment in reversed([s for s in parsed.path.split("/") if s]):
            if segment.isdigit():
                return parse_run_reference(int(segment))

    raise InvalidRunReferenceError(f"Cannot find a run id in {reference!r}")


class _APIClientFactory:
    """Builds the API client on first use and hands out the same one after."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: AgentRunAPIClient | None = None

    def __call__(self) -> AgentRunAPIClient:
        if self._client is None:
            self._client = AgentRunAPIClient(self._settings.api)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class RunTracker:
    """
    Track remote agent runs and get notified when they change.

    Example:
        ```python
        async with RunTracker.from_settings(Settings.from_env()) as tracker:
            await tracker.track_by_reference(7, "https://codegen.com/agent/trace/42")
            tracker.start()
            ...
        ```
    """

    def __init__(
        self,
        store: KeyValueStore,
        source_factory: JobSourceFactory,
        notifier: Notifier,
        *,
        settings: Settings | None = None,
        clock: Clock = utc_now,
        structured_logger: StructuredLogger | None = None,
    ):
        self.settings = settings or Settings()
        monitor = self.settings.monitor

        self.store = store
        self._source_factory = source_factory
        self.index = KeyIndex(store)
        self.run_cache = RunCache(store, ttl=timedelta(seconds=monitor.run_ttl_seconds), clock=clock)
        self.registry = TrackedRunRegistry(store, self.index, clock=clock)
        self.detector = StatusChangeDetector(
            self.registry,
            source_factory,
            run_cache=self.run_cache,
            clock=clock,
            cleanup_after=timedelta(hours=monitor.cleanup_after_hours),
            max_concurrent_fetches=monitor.max_concurrent_fetches,
        )
        self.sync_engine = SyncEngine(
            self.run_cache,
            store,
            source_factory,
            clock=clock,
            max_concurrent_fetches=monitor.max_concurrent_fetches,
            structured_logger=structured_logger,
        )
        self.dispatcher = NotificationDispatcher(notifier)
        self.scheduler = MonitorScheduler(
            self.registry,
            self.detector,
            self.dispatcher,
            poll_interval=monitor.poll_interval_seconds,
            sync_engine=self.sync_engine,
            sync_on_pass=monitor.sync_on_pass,
            structured_logger=structured_logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        notifier: Notifier | None = None,
        source_factory: JobSourceFactory | None = None,
        store: KeyValueStore | None = None,
        clock: Clock = utc_now,
    ) -> RunTracker:
        """Build a tracker from settings, filling in the configured defaults."""
        settings = settings or Settings.from_env()
        structured_logger = configure_logging(
            level=settings.logging.level,
            json_output=settings.logging.format == "json",
        )
        return cls(
            store or build_store(settings.store),
            source_factory or _APIClientFactory(settings),
            notifier or LoggingNotifier(),
            settings=settings,
            clock=clock,
            structured_logger=structured_logger,
        )

    async def __aenter__(self) -> RunTracker:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def open(self) -> None:
        await self.store.ensure_ready()

    async def close(self) -> None:
        """Stop monitoring and release the store, client and notifier."""
        await self.scheduler.stop()
        if isinstance(self._source_factory, _APIClientFactory):
            await self._source_factory.close()
        close_notifier = getattr(self.dispatcher.notifier, "close", None)
        if close_notifier is not None:
            await close_notifier()
        await self.store.close()

    def _source(self, organization_id: int, operation: str) -> JobSource:
        try:
            return self._source_factory()
        except Exception as exc:
            raise OrchestrationError(
                f"Cannot construct job source: {exc}",
                context=ErrorContext(organization_id=organization_id, operation=operation),
                cause=exc,
            ) from exc

    # Tracking

    async def track_run(self, organization_id: int, run_id: int, *, notify: bool = False) -> TrackedRun:
        """Fetch a run and start tracking it from its current status."""
        run = await self._source(organization_id, "track").fetch_run(organization_id, run_id)
        return await self._track(organization_id, run, notify=notify)

    async def track_by_reference(self, organization_id: int, reference: str | int) -> TrackedRun:
        """Like ``track_run``, accepting a run id or a run URL."""
        return await self.track_run(organization_id, parse_run_reference(reference))

    async def create_run(
        self,
        organization_id: int,
        prompt: str,
        images: list[str] | None = None,
    ) -> AgentRun:
        """Start a new remote run and track it.

        Sends the "started" notification when ``notify_on_track`` is set.
        """
        source = self._source(organization_id, "create")
        if not isinstance(source, AgentRunAPIClient):
            raise OrchestrationError(
                "The configured job source cannot create runs",
                context=ErrorContext(organization_id=organization_id, operation="create"),
            )
        run = await source.create_run(organization_id, prompt, images)
        await self._track(organization_id, run, notify=self.settings.monitor.notify_on_track)
        return run

    async def _track(self, organization_id: int, run: AgentRun, *, notify: bool) -> TrackedRun:
        tracked = await self.registry.track(organization_id, run)
        await self.run_cache.update_run(organization_id, run)
        if notify:
            await self.dispatcher.notify_created(run.id)
        return tracked

    async def untrack(self, organization_id: int, run_id: int) -> bool:
        return await self.registry.remove(organization_id, run_id)

    async def tracked_runs(self, organization_id: int) -> list[TrackedRun]:
        return await self.registry.get_tracked_runs(organization_id)

    # Cache views

    async def list_runs(
        self,
        organization_id: int,
        filters: RunFilters | None = None,
        sort: SortOptions | None = None,
    ) -> list[AgentRun]:
        """Cached runs of an organization, optionally filtered and re-sorted."""
        runs = await self.run_cache.get_runs(organization_id)
        if filters is not None:
            runs = filter_runs(runs, filters)
        if sort is not None:
            runs = sort_runs(runs, sort)
        return runs

    async def clear_cache(self, organization_id: int | None = None) -> None:
        await self.run_cache.clear(organization_id)

    # Sync and monitoring

    async def sync(self, organization_id: int) -> SyncState:
        return await self.sync_engine.sync_runs(organization_id)

    async def sync_state(self, organization_id: int) -> SyncState:
        return await self.sync_engine.get_sync_state(organization_id)

    async def check(self) -> PassResult:
        """Run one monitoring pass now."""
        return await self.scheduler.run_pass()

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    @property
    def is_monitoring(self) -> bool:
        return self.scheduler.is_running


__all__ = ["RunTracker", "parse_run_reference"]

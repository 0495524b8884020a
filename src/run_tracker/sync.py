"""
Organization sync: refresh every cached run from the remote job source.
"""

from __future__ import annotations

import asyncio
import json
import logging

from .cache.entry import decode_blob
from .cache.keys import sync_state_key
from .cache.runs import RunCache
from .client import JobSourceFactory
from .errors import CorruptCacheError, ErrorContext, OrchestrationError
from .logging import StructuredLogger, SyncLog, get_logger, timed
from .storage.base import KeyValueStore
from .types import AgentRun, Clock, SyncState, SyncStatus, utc_now

logger = logging.getLogger(__name__)


class SyncEngine:
    """Refreshes an organization's cached runs.

    A run that fails to fetch keeps its previous cached value and does not
    fail the sync. Only orchestration failures, such as the job source
    factory raising or the store being unreachable, end in
    ``SyncStatus.ERROR``; they are reported through the returned state and
    never raised.

    One sync per organization is in flight at a time: the whole sync holds
    the run cache's organization lock.
    """

    def __init__(
        self,
        run_cache: RunCache,
        store: KeyValueStore,
        source_factory: JobSourceFactory,
        *,
        clock: Clock = utc_now,
        max_concurrent_fetches: int = 8,
        structured_logger: StructuredLogger | None = None,
    ):
        self._run_cache = run_cache
        self._store = store
        self._source_factory = source_factory
        self._clock = clock
        self._max_concurrent_fetches = max_concurrent_fetches
        self._log = structured_logger

    @property
    def structured_logger(self) -> StructuredLogger:
        if self._log is None:
            self._log = get_logger()
        return self._log

    async def get_sync_state(self, organization_id: int) -> SyncState:
        key = sync_state_key(organization_id)
        raw = await self._store.get(key)
        if raw is None:
            return SyncState()
        try:
            data = decode_blob(raw, key)
            return SyncState.from_dict(data)
        except (CorruptCacheError, AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Treating corrupt sync state for org %s as idle: %s", organization_id, exc)
            return SyncState()

    async def _set_state(self, organization_id: int, state: SyncState) -> None:
        await self._store.set(sync_state_key(organization_id), json.dumps(state.to_dict()))

    async def sync_runs(self, organization_id: int) -> SyncState:
        """Refetch every cached run of ``organization_id`` and rewrite the cache."""
        record = SyncLog(organization_id=organization_id, status=SyncStatus.SYNCING.value)
        with timed() as timer:
            async with self._run_cache.lock(organization_id):
                try:
                    state = await self._sync_locked(organization_id, record)
                except Exception as exc:
                    error = exc
                    if not isinstance(exc, OrchestrationError):
                        error = OrchestrationError(
                            f"Sync failed: {exc}",
                            context=ErrorContext(organization_id=organization_id, operation="sync"),
                            cause=exc,
                        )
                    state = await self._fail(organization_id, error)
                    record.error = str(error)
        record.status = state.status.value
        record.duration_ms = timer.elapsed_ms
        self.structured_logger.log_sync(record)
        return state

    async def _sync_locked(self, organization_id: int, record: SyncLog) -> SyncState:
        previous = await self.get_sync_state(organization_id)
        await self._set_state(
            organization_id,
            SyncState(status=SyncStatus.SYNCING, last_sync=previous.last_sync),
        )

        try:
            source = self._source_factory()
        except Exception as exc:
            raise OrchestrationError(
                f"Cannot construct job source: {exc}",
                context=ErrorContext(organization_id=organization_id, operation="sync"),
                cause=exc,
            ) from exc

        cached = await self._run_cache.get_runs(organization_id)
        semaphore = asyncio.Semaphore(self._max_concurrent_fetches)

        async def refresh(run: AgentRun) -> AgentRun | None:
            async with semaphore:
                try:
                    return await source.fetch_run(organization_id, run.id)
                except Exception as exc:
                    logger.warning(
                        "Keeping cached run %s in org %s after fetch failure: %s",
                        run.id,
                        organization_id,
                        exc,
                    )
                    return None

        fresh = await asyncio.gather(*(refresh(run) for run in cached))
        merged = [new if new is not None else old for old, new in zip(cached, fresh)]
        await self._run_cache.set_runs(organization_id, merged)

        record.runs = len(merged)
        record.refreshed = sum(1 for run in fresh if run is not None)
        record.failed = record.runs - record.refreshed

        state = SyncState(status=SyncStatus.SUCCESS, last_sync=self._clock())
        await self._set_state(organization_id, state)
        return state

    async def _fail(self, organization_id: int, error: Exception) -> SyncState:
        state = SyncState(status=SyncStatus.ERROR, error=str(error))
        try:
            state.last_sync = (await self.get_sync_state(organization_id)).last_sync
            await self._set_state(organization_id, state)
        except Exception as exc:
            logger.warning("Could not persist sync error for org %s: %s", organization_id, exc)
        self.structured_logger.log_error(error, f"Sync of organization {organization_id} failed")
        return state


__all__ = ["SyncEngine"]

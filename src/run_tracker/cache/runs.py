"""
Organization-scoped cache of agent runs.

All runs of an organization live in a single blob under ``runs:{org}`` so
the key index does not grow with the number of runs. Single-record updates
therefore rewrite the whole organization's set; at hundreds of runs per
organization this is cheap enough.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Any

from ..errors import CorruptCacheError
from ..storage.base import KeyValueStore
from ..types import AgentRun, Clock, format_timestamp, needs_polling, utc_now
from .entry import SCHEMA_VERSION, RunCacheEntry, decode_blob, decode_entries
from .keys import RUN_CACHE_METADATA_KEY, runs_key

logger = logging.getLogger(__name__)

DEFAULT_RUN_TTL = timedelta(minutes=5)


class RunCache:
    """Cache of AgentRun snapshots, one batch per organization.

    Reads filter out expired entries using the clock at call time and
    return runs newest first. Writes stamp a fresh TTL on every run and
    record whether the run still needs polling.

    The read-modify-write helpers (``update_run``, ``remove_run``) hold the
    organization's lock; callers that rewrite the set themselves (the sync
    engine) take the same lock via ``lock()``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        ttl: timedelta = DEFAULT_RUN_TTL,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._ttl = ttl
        self._clock = clock
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._meta_lock = asyncio.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def lock(self, organization_id: int) -> asyncio.Lock:
        """Lock serializing writers of one organization's run set."""
        return self._locks[organization_id]

    async def _read_entries(self, organization_id: int) -> list[RunCacheEntry]:
        key = runs_key(organization_id)
        raw = await self._store.get(key)
        if raw is None:
            return []
        try:
            return decode_entries(raw, key, RunCacheEntry.from_dict)
        except CorruptCacheError as exc:
            logger.warning("Treating corrupt run cache for org %s as empty: %s", organization_id, exc)
            return []

    async def _live_entries(self, organization_id: int) -> list[RunCacheEntry]:
        now = self._clock()
        entries = [e for e in await self._read_entries(organization_id) if e.is_live(now)]
        entries.sort(key=lambda e: e.data.created_at, reverse=True)
        return entries

    async def get_runs(self, organization_id: int) -> list[AgentRun]:
        """Live cached runs for an organization, newest first."""
        return [e.data for e in await self._live_entries(organization_id)]

    async def get_run(self, organization_id: int, run_id: int) -> AgentRun | None:
        for run in await self.get_runs(organization_id):
            if run.id == run_id:
                return run
        return None

    async def set_runs(self, organization_id: int, runs: list[AgentRun]) -> None:
        """Replace the organization's cached runs with ``runs``."""
        now = self._clock()
        expires_at = now + self._ttl
        entries = [
            RunCacheEntry(
                data=run,
                timestamp=now,
                expires_at=expires_at,
                schema_version=SCHEMA_VERSION,
                organization_id=organization_id,
                needs_polling=needs_polling(run.status),
            )
            for run in runs
        ]
        await self._store.set(runs_key(organization_id), json.dumps([e.to_dict() for e in entries]))
        await self._record_sync(organization_id)

    async def update_run(self, organization_id: int, run: AgentRun) -> None:
        """Replace the run with the same id, or prepend it if new."""
        await self.merge_runs(organization_id, [run])

    async def merge_runs(self, organization_id: int, runs: list[AgentRun]) -> None:
        """Apply ``update_run`` for several runs with a single rewrite."""
        if not runs:
            return
        async with self.lock(organization_id):
            merged = await self.get_runs(organization_id)
            for run in runs:
                for i, existing in enumerate(merged):
                    if existing.id == run.id:
                        merged[i] = run
                        break
                else:
                    merged.insert(0, run)
            await self.set_runs(organization_id, merged)

    async def remove_run(self, organization_id: int, run_id: int) -> None:
        async with self.lock(organization_id):
            runs = await self.get_runs(organization_id)
            await self.set_runs(organization_id, [r for r in runs if r.id != run_id])

    async def get_polling_runs(self, organization_id: int) -> list[AgentRun]:
        """Live runs that were still in flight when last written."""
        return [e.data for e in await self._live_entries(organization_id) if e.needs_polling]

    async def clear(self, organization_id: int | None = None) -> None:
        """Drop one organization's runs, or every blob in the store."""
        if organization_id is not None:
            await self._store.remove(runs_key(organization_id))
            async with self._meta_lock:
                meta = await self.get_metadata()
                meta["organization_sync_status"].pop(str(organization_id), None)
                await self._store.set(RUN_CACHE_METADATA_KEY, json.dumps(meta))
        else:
            await self._store.clear()

    async def get_metadata(self) -> dict[str, Any]:
        """``{"version": ..., "organization_sync_status": {org: iso-timestamp}}``."""
        default = {"version": SCHEMA_VERSION, "organization_sync_status": {}}
        raw = await self._store.get(RUN_CACHE_METADATA_KEY)
        if raw is None:
            return default
        try:
            meta = decode_blob(raw, RUN_CACHE_METADATA_KEY)
        except CorruptCacheError as exc:
            logger.warning("Resetting corrupt run cache metadata: %s", exc)
            return default
        if not isinstance(meta, dict) or not isinstance(meta.get("organization_sync_status"), dict):
            return default
        return meta

    async def _record_sync(self, organization_id: int) -> None:
        async with self._meta_lock:
            meta = await self.get_metadata()
            meta["organization_sync_status"][str(organization_id)] = format_timestamp(self._clock())
            await self._store.set(RUN_CACHE_METADATA_KEY, json.dumps(meta))


__all__ = ["RunCache", "DEFAULT_RUN_TTL"]

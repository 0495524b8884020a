"""
Tracked-run registry.

Tracked runs are stored one record per (organization, run) and enumerated
through the key index, since the store itself cannot list keys.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict

from ..cache.entry import SCHEMA_VERSION, TrackedRunCacheEntry, decode_entry
from ..cache.index import KeyIndex
from ..cache.keys import TRACKED_ORGS_PREFIX, tracked_prefix, tracked_run_key
from ..errors import CorruptCacheError
from ..storage.base import KeyValueStore
from ..types import AgentRun, Clock, TrackedRun, utc_now

logger = logging.getLogger(__name__)


class TrackedRunRegistry:
    """Runs the user opted into monitoring.

    This is the only writer of ``TrackedRun.last_known_status``. Writes for
    one organization are serialized by a per-organization lock so that
    concurrent status updates cannot lose each other.
    """

    def __init__(
        self,
        store: KeyValueStore,
        index: KeyIndex | None = None,
        *,
        clock: Clock = utc_now,
    ):
        self._store = store
        self._index = index or KeyIndex(store)
        self._clock = clock
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def index(self) -> KeyIndex:
        return self._index

    async def track(self, organization_id: int, run: AgentRun, *, observed: bool = True) -> TrackedRun:
        """Start tracking ``run``.

        With ``observed`` the run's current status becomes the baseline, so
        the first pass only reports later transitions. Re-tracking a run
        overwrites its record and resets ``added_at``.
        """
        tracked = TrackedRun(
            id=run.id,
            organization_id=organization_id,
            last_known_status=run.status if observed else None,
            created_at=run.created_at,
            web_url=run.web_url,
            added_at=self._clock(),
        )
        key = tracked_run_key(organization_id, run.id)
        async with self._locks[organization_id]:
            await self._write(tracked)
            await self._index.add(tracked_prefix(organization_id), key)
            await self._index.add(TRACKED_ORGS_PREFIX, str(organization_id))
        logger.debug("Tracking run %s in org %s", run.id, organization_id)
        return tracked

    async def get(self, organization_id: int, run_id: int) -> TrackedRun | None:
        key = tracked_run_key(organization_id, run_id)
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return decode_entry(raw, key, TrackedRunCacheEntry.from_dict).data
        except CorruptCacheError as exc:
            logger.warning("Skipping corrupt tracked run %s: %s", key, exc)
            return None

    async def get_tracked_runs(self, organization_id: int) -> list[TrackedRun]:
        """Tracked runs of an organization, in the order they were added."""
        runs = []
        for key in await self._index.list_keys(tracked_prefix(organization_id)):
            run_id = _run_id_from_key(key)
            if run_id is None:
                continue
            tracked = await self.get(organization_id, run_id)
            if tracked is not None:
                runs.append(tracked)
        return runs

    async def is_tracked(self, organization_id: int, run_id: int) -> bool:
        return await self.get(organization_id, run_id) is not None

    async def tracked_organizations(self) -> list[int]:
        orgs = []
        for key in await self._index.list_keys(TRACKED_ORGS_PREFIX):
            try:
                orgs.append(int(key))
            except ValueError:
                logger.warning("Ignoring malformed organization key %r", key)
        return orgs

    async def update_status(self, organization_id: int, run_id: int, status: str) -> TrackedRun | None:
        """Record a newly observed status. Returns None if the run is no longer tracked."""
        async with self._locks[organization_id]:
            tracked = await self.get(organization_id, run_id)
            if tracked is None:
                return None
            updated = tracked.with_status(status)
            await self._write(updated)
            return updated

    async def remove(self, organization_id: int, run_id: int) -> bool:
        key = tracked_run_key(organization_id, run_id)
        prefix = tracked_prefix(organization_id)
        async with self._locks[organization_id]:
            existed = await self._store.get(key) is not None
            await self._store.remove(key)
            removed = await self._index.discard(prefix, key)
            if not await self._index.list_keys(prefix):
                await self._index.discard(TRACKED_ORGS_PREFIX, str(organization_id))
        return existed or removed

    async def _write(self, tracked: TrackedRun) -> None:
        entry = TrackedRunCacheEntry(
            data=tracked,
            timestamp=self._clock(),
            expires_at=None,
            schema_version=SCHEMA_VERSION,
        )
        await self._store.set(
            tracked_run_key(tracked.organization_id, tracked.id),
            json.dumps(entry.to_dict()),
        )


def _run_id_from_key(key: str) -> int | None:
    try:
        return int(key.rsplit(":", 1)[1])
    except (IndexError, ValueError):
        logger.warning("Ignoring malformed tracked-run key %r", key)
        return None


__all__ = ["TrackedRunRegistry"]

"""
Key index for stores without key enumeration.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict

from ..errors import CorruptCacheError
from ..storage.base import KeyValueStore
from .entry import decode_blob
from .keys import index_key

logger = logging.getLogger(__name__)


class KeyIndex:
    """Ordered key sets per logical prefix, persisted next to the data.

    The index is a hint, not the source of truth for existence: readers
    that find an indexed key missing from the store must skip it.

    Example:
        ```python
        index = KeyIndex(store)
        await index.add("tracked:7", "tracked:7:42")
        for key in await index.list_keys("tracked:7"):
            blob = await store.get(key)
        ```
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def list_keys(self, prefix: str) -> list[str]:
        """Keys under ``prefix`` in insertion order."""
        key = index_key(prefix)
        raw = await self._store.get(key)
        if raw is None:
            return []
        try:
            parsed = decode_blob(raw, key)
        except CorruptCacheError as exc:
            logger.warning("Ignoring corrupt key index %s: %s", key, exc)
            return []
        if not isinstance(parsed, list):
            logger.warning("Ignoring malformed key index %s", key)
            return []
        return [str(k) for k in parsed]

    async def add(self, prefix: str, key: str) -> bool:
        """Append ``key`` unless already present. Returns True if added."""
        async with self._locks[prefix]:
            keys = await self.list_keys(prefix)
            if key in keys:
                return False
            keys.append(key)
            await self._write(prefix, keys)
            return True

    async def discard(self, prefix: str, key: str) -> bool:
        """Remove ``key`` if present. Returns True if removed."""
        async with self._locks[prefix]:
            keys = await self.list_keys(prefix)
            if key not in keys:
                return False
            keys.remove(key)
            await self._write(prefix, keys)
            return True

    async def clear(self, prefix: str) -> None:
        async with self._locks[prefix]:
            await self._store.remove(index_key(prefix))

    async def _write(self, prefix: str, keys: list[str]) -> None:
        if keys:
            await self._store.set(index_key(prefix), json.dumps(keys))
        else:
            await self._store.remove(index_key(prefix))


__all__ = ["KeyIndex"]

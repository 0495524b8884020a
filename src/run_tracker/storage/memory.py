"""
In-memory store with a byte-capacity bound.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict

from .base import BaseKeyValueStore, StoreBackendName

logger = logging.getLogger(__name__)


class InMemoryStore(BaseKeyValueStore):
    """In-memory key-value store.

    Suitable for testing and single-process deployments. When the total
    size of stored blobs exceeds ``capacity_bytes`` the least recently
    used entries are evicted, so readers see keys disappear exactly as
    they would with a real bounded cache.
    """

    name: StoreBackendName = "memory"

    def __init__(
        self,
        namespace: str = "run-tracker",
        capacity_bytes: int | None = 10 * 1024 * 1024,
    ):
        if capacity_bytes is not None and capacity_bytes <= 0:
            raise ValueError("capacity_bytes must be positive")
        self.namespace = namespace
        self.capacity_bytes = capacity_bytes
        self._data: OrderedDict[str, str] = OrderedDict()
        self._size = 0
        self._lock = asyncio.Lock()

    @property
    def size_bytes(self) -> int:
        return self._size

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            value = self._data.get(key)
            if value is not None:
                self._data.move_to_end(key)
            return value

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            previous = self._data.pop(key, None)
            if previous is not None:
                self._size -= _blob_size(previous)
            self._data[key] = value
            self._size += _blob_size(value)
            self._evict()

    async def remove(self, key: str) -> None:
        async with self._lock:
            previous = self._data.pop(key, None)
            if previous is not None:
                self._size -= _blob_size(previous)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()
            self._size = 0

    def _evict(self) -> None:
        if self.capacity_bytes is None:
            return
        # Never evict the entry that was just written
        while self._size > self.capacity_bytes and len(self._data) > 1:
            key, value = self._data.popitem(last=False)
            self._size -= _blob_size(value)
            logger.debug("Evicted %s from %s store", key, self.namespace)


def _blob_size(value: str) -> int:
    return len(value.encode("utf-8"))


__all__ = ["InMemoryStore"]

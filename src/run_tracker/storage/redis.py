"""
Redis-backed store.

Redis is designed for speed, not durability: entries can vanish on
restart or under maxmemory eviction. That matches the store contract the
cache is written against (entries may disappear at any time), so Redis is
a good fit for sharing the run cache between processes.

Requires redis (async): pip install redis
"""

from __future__ import annotations

from typing import Any

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError

from ..errors import StoreUnavailableError
from .base import BaseKeyValueStore, StoreBackendName


class RedisStore(BaseKeyValueStore):
    """Key-value store on top of a Redis client.

    Every key is prefixed with ``{namespace}:`` so that ``clear()`` only
    touches this store's entries.

    Example:
        ```python
        store = RedisStore.from_url("redis://localhost:6379/0")
        await store.ensure_ready()
        await store.set("runs:1", "[]")
        ```
    """

    name: StoreBackendName = "redis"

    def __init__(
        self,
        client: Any,  # redis.Redis
        namespace: str = "run-tracker",
        ttl_seconds: int | None = None,
    ):
        self._client = client
        self.namespace = namespace
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisStore:
        client = redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def ensure_ready(self) -> None:
        try:
            await self._client.ping()
        except RedisConnectionError as exc:
            raise StoreUnavailableError(f"Redis unavailable: {exc}", cause=exc) from exc

    async def close(self) -> None:
        await self._client.aclose()

    async def get(self, key: str) -> str | None:
        value = await self._client.get(self._key(key))
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        if self._ttl:
            await self._client.setex(self._key(key), self._ttl, value)
        else:
            await self._client.set(self._key(key), value)

    async def remove(self, key: str) -> None:
        await self._client.delete(self._key(key))

    async def clear(self) -> None:
        keys = [k async for k in self._client.scan_iter(match=f"{self.namespace}:*")]
        if keys:
            await self._client.delete(*keys)


__all__ = ["RedisStore"]

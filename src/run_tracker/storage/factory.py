"""
Factory for building a store from configuration.
"""

from __future__ import annotations

from ..config.store import StoreConfig
from .base import KeyValueStore
from .fs import FSStore, FSStoreConfig
from .memory import InMemoryStore
from .redis import RedisStore


def build_store(config: StoreConfig) -> KeyValueStore:
    """Build the configured store backend (not yet ensure_ready()'d)."""
    if config.backend == "memory":
        return InMemoryStore(namespace=config.namespace, capacity_bytes=config.capacity_bytes)
    if config.backend == "fs":
        return FSStore(FSStoreConfig(dir=config.directory, namespace=config.namespace))
    if config.backend == "redis":
        return RedisStore.from_url(
            config.redis_url,
            namespace=config.namespace,
            ttl_seconds=config.redis_ttl_seconds,
        )
    raise ValueError(f"Unknown store backend: {config.backend}")


__all__ = ["build_store"]

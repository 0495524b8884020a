"""
Durable key-value stores backing the run cache.
"""

from .base import BaseKeyValueStore, KeyValueStore, StoreBackendName
from .factory import build_store
from .fs import FSStore, FSStoreConfig
from .memory import InMemoryStore
from .redis import RedisStore

__all__ = [
    "KeyValueStore",
    "BaseKeyValueStore",
    "StoreBackendName",
    "InMemoryStore",
    "FSStore",
    "FSStoreConfig",
    "RedisStore",
    "build_store",
]

"""
Base classes and protocols for durable key-value stores.

The core only relies on get/set/remove/clear. Stores never enumerate their
keys; callers that need listings keep a KeyIndex alongside.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal, Protocol, runtime_checkable

StoreBackendName = Literal["memory", "fs", "redis"]


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Protocol defining the interface for durable stores.

    Entries may disappear at any time (capacity eviction, TTL, manual
    deletion); readers must treat a missing key as a normal outcome.
    """

    name: StoreBackendName
    namespace: str

    async def ensure_ready(self) -> None:
        """Initialize backend and ensure it's ready for use."""
        ...

    async def close(self) -> None:
        """Clean up and close backend connections."""
        ...

    async def get(self, key: str) -> str | None:
        """Read a blob, or None if absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Write a blob, replacing any previous value."""
        ...

    async def remove(self, key: str) -> None:
        """Delete a blob. Missing keys are ignored."""
        ...

    async def clear(self) -> None:
        """Delete every blob in this store's namespace."""
        ...


class BaseKeyValueStore(ABC):
    """
    Abstract base class for stores.

    Provides default implementations for optional lifecycle methods.
    """

    name: StoreBackendName = "memory"
    namespace: str = "run-tracker"

    async def ensure_ready(self) -> None:
        """Default no-op."""
        return None

    async def close(self) -> None:
        """Default no-op close."""
        return None

    @abstractmethod
    async def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


__all__ = ["StoreBackendName", "KeyValueStore", "BaseKeyValueStore"]

"""
Durable store configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .base import StoreBackendType


@dataclass
class StoreConfig:
    """Configuration for the key-value store behind the cache."""

    backend: StoreBackendType = "memory"
    namespace: str = "agent-runs"

    # memory backend
    capacity_bytes: int | None = 10 * 1024 * 1024

    # fs backend
    directory: Path = field(default_factory=lambda: Path("./.run-tracker"))

    # redis backend
    redis_url: str = field(default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    redis_ttl_seconds: int | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.backend not in ("memory", "fs", "redis"):
            raise ValueError(f"Invalid store backend: {self.backend}")
        if not self.namespace:
            raise ValueError("namespace is required")
        if self.capacity_bytes is not None and self.capacity_bytes <= 0:
            raise ValueError("capacity_bytes must be positive")
        if isinstance(self.directory, str):
            self.directory = Path(self.directory)
        if self.backend == "redis" and not self.redis_url.startswith(("redis://", "rediss://")):
            raise ValueError("redis_url must be a valid Redis connection string")
        if self.redis_ttl_seconds is not None and self.redis_ttl_seconds <= 0:
            raise ValueError("redis_ttl_seconds must be positive")


__all__ = ["StoreConfig"]

"""
Cache and monitoring configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class MonitorConfig:
    """Timing knobs for caching, polling and cleanup."""

    run_ttl_seconds: float = 300.0
    poll_interval_seconds: float = 30.0
    cleanup_after_hours: float = 24.0
    max_concurrent_fetches: int = 8
    sync_on_pass: bool = False
    notify_on_track: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.run_ttl_seconds <= 0:
            raise ValueError("run_ttl_seconds must be positive")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.cleanup_after_hours < 0:
            raise ValueError("cleanup_after_hours cannot be negative")
        if self.max_concurrent_fetches < 1:
            raise ValueError("max_concurrent_fetches must be at least 1")


__all__ = ["MonitorConfig"]

"""
Base types for configuration.
"""

from __future__ import annotations

from typing import Literal

StoreBackendType = Literal["memory", "fs", "redis"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]


__all__ = ["StoreBackendType", "LogLevel", "LogFormat"]

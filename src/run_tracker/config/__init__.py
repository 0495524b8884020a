"""
Configuration system for run-tracker.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable and .env loading
- YAML/TOML file loading validated by JSON schema
"""

from .api import DEFAULT_API_BASE_URL, APIConfig
from .base import LogFormat, LogLevel, StoreBackendType
from .logging import LoggingConfig
from .monitor import MonitorConfig
from .settings import Settings, configure, get_settings, load_env
from .store import StoreConfig

__all__ = [
    "StoreBackendType",
    "LogLevel",
    "LogFormat",
    "DEFAULT_API_BASE_URL",
    "APIConfig",
    "StoreConfig",
    "MonitorConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "configure",
    "load_env",
]

"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..errors import InvalidConfigError
from .api import APIConfig
from .logging import LoggingConfig
from .monitor import MonitorConfig
from .schema import CONFIG_SCHEMA
from .store import StoreConfig


@dataclass
class Settings:
    """
    Master configuration for run-tracker.

    Aggregates all configuration sections into a single object that can be
    loaded from environment variables, files, or constructed directly.
    """

    api: APIConfig = field(default_factory=APIConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "RUN_TRACKER_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            RUN_TRACKER_API_TOKEN=...
            RUN_TRACKER_STORE_BACKEND=fs
            RUN_TRACKER_POLL_INTERVAL=15
        """
        settings = cls()

        try:
            # API settings
            if token := os.getenv(f"{prefix}API_TOKEN"):
                settings.api.api_token = token
            if url := os.getenv(f"{prefix}API_BASE_URL"):
                settings.api = APIConfig(
                    api_token=settings.api.api_token,
                    base_url=url,
                    timeout=settings.api.timeout,
                    default_organization_id=settings.api.default_organization_id,
                )
            if timeout := os.getenv(f"{prefix}API_TIMEOUT"):
                settings.api.timeout = float(timeout)
            if org := os.getenv(f"{prefix}DEFAULT_ORGANIZATION"):
                settings.api.default_organization_id = int(org)

            # Store settings
            if backend := os.getenv(f"{prefix}STORE_BACKEND"):
                settings.store.backend = backend.lower()  # type: ignore
            if namespace := os.getenv(f"{prefix}STORE_NAMESPACE"):
                settings.store.namespace = namespace
            if directory := os.getenv(f"{prefix}STORE_DIR"):
                settings.store.directory = Path(directory)
            if redis_url := os.getenv(f"{prefix}REDIS_URL"):
                settings.store.redis_url = redis_url

            # Monitor settings
            if ttl := os.getenv(f"{prefix}RUN_TTL"):
                settings.monitor.run_ttl_seconds = float(ttl)
            if interval := os.getenv(f"{prefix}POLL_INTERVAL"):
                settings.monitor.poll_interval_seconds = float(interval)
            if cleanup := os.getenv(f"{prefix}CLEANUP_AFTER_HOURS"):
                settings.monitor.cleanup_after_hours = float(cleanup)
            if fetches := os.getenv(f"{prefix}MAX_CONCURRENT_FETCHES"):
                settings.monitor.max_concurrent_fetches = int(fetches)
            if sync_on_pass := os.getenv(f"{prefix}SYNC_ON_PASS"):
                settings.monitor.sync_on_pass = sync_on_pass.lower() == "true"

            # Logging settings
            if level := os.getenv(f"{prefix}LOG_LEVEL"):
                settings.logging.level = level.upper()  # type: ignore
            if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
                settings.logging.format = log_format.lower()  # type: ignore

            # Re-run section validation after field assignment
            settings.api.__post_init__()
            settings.store.__post_init__()
            settings.monitor.__post_init__()
            settings.logging.__post_init__()
        except ValueError as e:
            raise InvalidConfigError(f"Invalid environment configuration: {e}") from e

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml

            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib

            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The input is validated against the configuration schema before any
        section is built.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}") from e

        try:
            return cls(
                api=APIConfig(**data.get("api", {})),
                store=StoreConfig(**data.get("store", {})),
                monitor=MonitorConfig(**data.get("monitor", {})),
                logging=LoggingConfig(**data.get("logging", {})),
            )
        except ValueError as e:
            raise InvalidConfigError(str(e)) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""

        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return {k: convert(v) for k, v in dataclasses.asdict(obj).items()}
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        return convert(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "load_env"]

"""
JSON schemas for configuration validation.
"""

API_SCHEMA = {
    "type": "object",
    "properties": {
        "api_token": {"type": ["string", "null"]},
        "base_url": {"type": "string"},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "default_organization_id": {"type": ["integer", "null"]},
    },
    "additionalProperties": False,
}

STORE_SCHEMA = {
    "type": "object",
    "properties": {
        "backend": {"type": "string", "enum": ["memory", "fs", "redis"]},
        "namespace": {"type": "string", "minLength": 1},
        "capacity_bytes": {"type": ["integer", "null"], "minimum": 1},
        "directory": {"type": "string"},
        "redis_url": {"type": "string"},
        "redis_ttl_seconds": {"type": ["integer", "null"], "minimum": 1},
    },
    "additionalProperties": False,
}

MONITOR_SCHEMA = {
    "type": "object",
    "properties": {
        "run_ttl_seconds": {"type": "number", "exclusiveMinimum": 0},
        "poll_interval_seconds": {"type": "number", "exclusiveMinimum": 0},
        "cleanup_after_hours": {"type": "number", "minimum": 0},
        "max_concurrent_fetches": {"type": "integer", "minimum": 1},
        "sync_on_pass": {"type": "boolean"},
        "notify_on_track": {"type": "boolean"},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "api": API_SCHEMA,
        "store": STORE_SCHEMA,
        "monitor": MONITOR_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}

__all__ = ["CONFIG_SCHEMA"]

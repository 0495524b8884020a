"""
Local cache for agent runs: entry envelopes, key index and the run cache.
"""

from .entry import SCHEMA_VERSION, CacheEntry, RunCacheEntry, TrackedRunCacheEntry
from .index import KeyIndex
from .keys import (
    RUN_CACHE_METADATA_KEY,
    TRACKED_ORGS_PREFIX,
    index_key,
    runs_key,
    sync_state_key,
    tracked_prefix,
    tracked_run_key,
)
from .runs import DEFAULT_RUN_TTL, RunCache

__all__ = [
    "SCHEMA_VERSION",
    "CacheEntry",
    "RunCacheEntry",
    "TrackedRunCacheEntry",
    "KeyIndex",
    "RunCache",
    "DEFAULT_RUN_TTL",
    "TRACKED_ORGS_PREFIX",
    "RUN_CACHE_METADATA_KEY",
    "runs_key",
    "tracked_run_key",
    "tracked_prefix",
    "index_key",
    "sync_state_key",
]

"""
Persisted key layout.

    runs:{org}              one serialized run list per organization
    tracked:{org}:{run}     one tracked-run record per (org, run)
    index:{prefix}          one key index per indexed prefix
    syncstate:{org}         latest SyncState per organization
    meta:runs               run cache metadata
"""

from __future__ import annotations

TRACKED_ORGS_PREFIX = "tracked-orgs"
RUN_CACHE_METADATA_KEY = "meta:runs"


def runs_key(organization_id: int) -> str:
    return f"runs:{organization_id}"


def tracked_run_key(organization_id: int, run_id: int) -> str:
    return f"tracked:{organization_id}:{run_id}"


def tracked_prefix(organization_id: int) -> str:
    return f"tracked:{organization_id}"


def index_key(prefix: str) -> str:
    return f"index:{prefix}"


def sync_state_key(organization_id: int) -> str:
    return f"syncstate:{organization_id}"


__all__ = [
    "TRACKED_ORGS_PREFIX",
    "RUN_CACHE_METADATA_KEY",
    "runs_key",
    "tracked_run_key",
    "tracked_prefix",
    "index_key",
    "sync_state_key",
]

"""
Top-level package for run-tracker.

Tracks long-running remote agent runs without a push channel: runs are
cached locally, in-flight ones are re-polled, status transitions are
detected and the ones worth surfacing are handed to a notifier.

Environment variables are not loaded on import; call ``load_env()`` to
read a ``.env`` file first.
"""

from .cache import KeyIndex, RunCache
from .client import AgentRunAPIClient, JobSource
from .config import Settings, configure, get_settings, load_env
from .errors import (
    AuthenticationError,
    CorruptCacheError,
    InvalidRunReferenceError,
    NotFoundError,
    OrchestrationError,
    RateLimitError,
    RunTrackerError,
    TransportError,
)
from .filtering import RunFilters, SortOptions, filter_runs, sort_runs, status_counts
from .logging import configure_logging, get_logger
from .notifications import (
    LoggingNotifier,
    NotificationDecision,
    NotificationDispatcher,
    Notifier,
    Severity,
    WebhookNotifier,
    created_decision,
    decide,
)
from .scheduler import MonitorScheduler, PassResult
from .storage import FSStore, InMemoryStore, KeyValueStore, RedisStore, build_store
from .sync import SyncEngine
from .tracker import RunTracker, parse_run_reference
from .tracking import StatusChangeDetector, TrackedRunRegistry
from .types import (
    AgentRun,
    RunStatus,
    StatusChange,
    SyncState,
    SyncStatus,
    TrackedRun,
)

__version__ = "0.1.0"

__all__ = [
    # Facade
    "RunTracker",
    "parse_run_reference",
    # Types
    "AgentRun",
    "RunStatus",
    "StatusChange",
    "SyncState",
    "SyncStatus",
    "TrackedRun",
    # Components
    "KeyIndex",
    "RunCache",
    "TrackedRunRegistry",
    "StatusChangeDetector",
    "SyncEngine",
    "MonitorScheduler",
    "PassResult",
    # Job source
    "JobSource",
    "AgentRunAPIClient",
    # Notifications
    "Severity",
    "NotificationDecision",
    "decide",
    "created_decision",
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "NotificationDispatcher",
    # Storage
    "KeyValueStore",
    "InMemoryStore",
    "FSStore",
    "RedisStore",
    "build_store",
    # Filtering
    "RunFilters",
    "SortOptions",
    "filter_runs",
    "sort_runs",
    "status_counts",
    # Config and logging
    "Settings",
    "get_settings",
    "configure",
    "load_env",
    "get_logger",
    "configure_logging",
    # Errors
    "RunTrackerError",
    "TransportError",
    "NotFoundError",
    "AuthenticationError",
    "RateLimitError",
    "CorruptCacheError",
    "OrchestrationError",
    "InvalidRunReferenceError",
]

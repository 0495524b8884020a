"""
Notification policy and delivery.
"""

from .notifier import (
    BaseNotifier,
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
    WebhookNotifier,
)
from .policy import (
    SILENT,
    NotificationDecision,
    Severity,
    created_decision,
    decide,
    run_title,
)

__all__ = [
    "Severity",
    "NotificationDecision",
    "SILENT",
    "decide",
    "created_decision",
    "run_title",
    "Notifier",
    "BaseNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "NotificationDispatcher",
]

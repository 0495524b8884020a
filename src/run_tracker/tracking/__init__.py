"""
Explicit run tracking: the registry of tracked runs and the status-change detector.
"""

from .detector import DEFAULT_CLEANUP_AFTER, StatusChangeDetector
from .registry import TrackedRunRegistry

__all__ = [
    "TrackedRunRegistry",
    "StatusChangeDetector",
    "DEFAULT_CLEANUP_AFTER",
]

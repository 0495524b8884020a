"""
Notification policy.

``decide`` maps a status transition to whether, and how, a user should be
told about it. It is pure: same inputs, same decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..types import RunStatus


class Severity(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class NotificationDecision:
    """What to tell the user about one transition, if anything."""

    should_notify: bool
    title: str = ""
    message: str = ""
    severity: Severity = Severity.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "should_notify": self.should_notify,
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
        }


SILENT = NotificationDecision(should_notify=False)

# status -> (title label, message, severity)
_TERMINAL_NOTICES: dict[RunStatus, tuple[str, str, Severity]] = {
    RunStatus.COMPLETE: ("Complete", "Your agent run has finished successfully", Severity.SUCCESS),
    RunStatus.ERROR: ("Failed", "Your agent run encountered an error", Severity.FAILURE),
    RunStatus.CANCELLED: ("Cancelled", "Your agent run was cancelled", Severity.FAILURE),
    RunStatus.TIMEOUT: ("Timed Out", "Your agent run exceeded the time limit", Severity.FAILURE),
    RunStatus.MAX_ITERATIONS_REACHED: (
        "Max Iterations",
        "Your agent run reached the maximum number of iterations",
        Severity.FAILURE,
    ),
    RunStatus.OUT_OF_TOKENS: ("Out of Tokens", "Your agent run ran out of tokens", Severity.FAILURE),
}


def run_title(run_id: int, label: str) -> str:
    return f"Agent Run #{run_id} • {label}"


def decide(run_id: int, old_status: str | None, new_status: str) -> NotificationDecision:
    """
    Decide whether a transition from ``old_status`` to ``new_status`` is worth surfacing.

    A first observation (``old_status`` None) never notifies, and neither
    does entering EVALUATION. Terminal statuses and resuming into ACTIVE
    notify with a dedicated message; any other new status gets a generic one.
    """
    if old_status is None or old_status == new_status:
        return SILENT
    if new_status == RunStatus.EVALUATION.value:
        return SILENT

    if new_status == RunStatus.ACTIVE.value:
        # old == ACTIVE was handled above
        return NotificationDecision(
            should_notify=True,
            title=run_title(run_id, "Active"),
            message="Your agent run is now active",
            severity=Severity.SUCCESS,
        )

    for status, (label, message, severity) in _TERMINAL_NOTICES.items():
        if new_status == status.value:
            return NotificationDecision(
                should_notify=True,
                title=run_title(run_id, label),
                message=message,
                severity=severity,
            )

    return NotificationDecision(
        should_notify=True,
        title=run_title(run_id, "Status Changed"),
        message=f"Status changed to {new_status}",
        severity=Severity.SUCCESS,
    )


def created_decision(run_id: int) -> NotificationDecision:
    """Decision for a run that was just created and added to tracking."""
    return NotificationDecision(
        should_notify=True,
        title=run_title(run_id, "Started"),
        message="Your agent run has been created and is now being tracked",
        severity=Severity.SUCCESS,
    )


__all__ = [
    "Severity",
    "NotificationDecision",
    "SILENT",
    "decide",
    "created_decision",
    "run_title",
]

"""
Notification delivery.

Notifiers deliver a decided notification somewhere. The dispatcher runs a
StatusChange through the policy and hands the result to a notifier,
logging delivery failures instead of propagating them.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

import aiohttp

from ..types import StatusChange, format_timestamp, utc_now
from .policy import NotificationDecision, Severity, created_decision, decide

logger = logging.getLogger(__name__)


@runtime_checkable
class Notifier(Protocol):
    async def notify(self, title: str, message: str, severity: Severity) -> None:
        ...


class BaseNotifier(ABC):
    """Base class for notifiers."""

    @abstractmethod
    async def notify(self, title: str, message: str, severity: Severity) -> None:
        """Deliver a single notification."""
        ...

    async def close(self) -> None:
        """Release resources. No-op by default."""
        return None


class LoggingNotifier(BaseNotifier):
    """Writes notifications to a logger. Failures go out at WARNING."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    async def notify(self, title: str, message: str, severity: Severity) -> None:
        level = logging.INFO if severity == Severity.SUCCESS else logging.WARNING
        self._log.log(level, "%s: %s", title, message)


@dataclass
class WebhookNotifier(BaseNotifier):
    """Posts notifications as JSON to a webhook URL.

    Features:
    - Async HTTP POST with configurable timeout
    - Retries with exponential backoff
    - Optional HMAC-SHA256 signature header for verification

    Delivery failures are logged after the last attempt, not raised.
    """

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 10.0
    max_retries: int = 3
    backoff_base: float = 1.0
    secret: str | None = None

    _session: aiohttp.ClientSession | None = field(default=None, init=False)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _sign_payload(self, payload: str) -> str | None:
        if not self.secret:
            return None
        signature = hmac.new(
            self.secret.encode(),
            payload.encode(),
            hashlib.sha256,
        ).hexdigest()
        return f"sha256={signature}"

    async def notify(self, title: str, message: str, severity: Severity) -> None:
        session = await self._get_session()

        payload = json.dumps({
            "title": title,
            "message": message,
            "severity": severity.value,
            "sent_at": format_timestamp(utc_now()),
        })

        headers = dict(self.headers)
        headers["Content-Type"] = "application/json"
        signature = self._sign_payload(payload)
        if signature:
            headers["X-Webhook-Signature"] = signature

        last_error = None
        for attempt in range(self.max_retries):
            try:
                async with session.post(
                    self.url,
                    data=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status < 400:
                        return
                    last_error = f"HTTP {response.status}"
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = str(e)

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_base * (2 ** attempt))

        logger.warning(
            "Webhook delivery failed after %d attempts: %s", self.max_retries, last_error
        )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()


Policy = Callable[[int, str | None, str], NotificationDecision]


class NotificationDispatcher:
    """Turns status changes into notifications.

    ``dispatch`` and ``notify_created`` return True only if the notifier
    was called and returned normally.
    """

    def __init__(self, notifier: Notifier, policy: Policy = decide):
        self._notifier = notifier
        self._policy = policy

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    async def dispatch(self, change: StatusChange) -> bool:
        decision = self._policy(change.agent_run_id, change.old_status, change.new_status)
        if not decision.should_notify:
            return False
        return await self._send(decision, run_id=change.agent_run_id)

    async def notify_created(self, run_id: int) -> bool:
        return await self._send(created_decision(run_id), run_id=run_id)

    async def _send(self, decision: NotificationDecision, **context: Any) -> bool:
        try:
            await self._notifier.notify(decision.title, decision.message, decision.severity)
        except Exception as exc:
            logger.warning("Notifier failed for %r (%s): %s", decision.title, context, exc)
            return False
        return True


__all__ = [
    "Notifier",
    "BaseNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "NotificationDispatcher",
]

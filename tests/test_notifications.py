"""
Tests for the notification policy, notifiers and dispatcher.
"""
import json
import logging

import pytest
from conftest import RecordingNotifier

from run_tracker.notifications import (
    LoggingNotifier,
    NotificationDispatcher,
    Severity,
    WebhookNotifier,
    created_decision,
    decide,
)
from run_tracker.types import StatusChange


class TestDecide:
    """Tests for the notification decision table."""

    @pytest.mark.parametrize("old,new", [
        (None, "COMPLETE"),
        (None, "ACTIVE"),
        ("COMPLETE", "COMPLETE"),
        ("ACTIVE", "EVALUATION"),
        ("PAUSED", "EVALUATION"),
        ("ACTIVE", "ACTIVE"),
    ])
    def test_silent_transitions(self, old, new):
        assert not decide(42, old, new).should_notify

    @pytest.mark.parametrize("new,label,severity", [
        ("COMPLETE", "Complete", Severity.SUCCESS),
        ("ERROR", "Failed", Severity.FAILURE),
        ("CANCELLED", "Cancelled", Severity.FAILURE),
        ("TIMEOUT", "Timed Out", Severity.FAILURE),
        ("MAX_ITERATIONS_REACHED", "Max Iterations", Severity.FAILURE),
        ("OUT_OF_TOKENS", "Out of Tokens", Severity.FAILURE),
    ])
    def test_terminal_transitions(self, new, label, severity):
        decision = decide(42, "ACTIVE", new)

        assert decision.should_notify
        assert decision.title == f"Agent Run #42 • {label}"
        assert decision.severity is severity
        assert decision.message

    def test_resume_into_active(self):
        decision = decide(42, "PAUSED", "ACTIVE")

        assert decision.should_notify
        assert decision.title == "Agent Run #42 • Active"
        assert decision.severity is Severity.SUCCESS

    @pytest.mark.parametrize("new", ["PAUSED", "PENDING", "FAILED", "SOMETHING_NEW"])
    def test_other_statuses_get_generic_message(self, new):
        decision = decide(42, "ACTIVE", new)

        assert decision.should_notify
        assert decision.title == "Agent Run #42 • Status Changed"
        assert decision.message == f"Status changed to {new}"
        assert decision.severity is Severity.SUCCESS

    def test_is_deterministic(self):
        assert decide(1, "ACTIVE", "ERROR") == decide(1, "ACTIVE", "ERROR")

    def test_created_decision(self):
        decision = created_decision(42)
        assert decision.should_notify
        assert decision.title == "Agent Run #42 • Started"
        assert decision.to_dict()["severity"] == "success"


class TestNotificationDispatcher:
    """Tests for running changes through policy and notifier."""

    def _change(self, old, new):
        return StatusChange(agent_run_id=42, organization_id=7, old_status=old, new_status=new)

    async def test_dispatch_notifies(self):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        assert await dispatcher.dispatch(self._change("ACTIVE", "COMPLETE"))
        assert notifier.sent == [
            ("Agent Run #42 • Complete", "Your agent run has finished successfully", Severity.SUCCESS),
        ]

    async def test_silent_change_is_not_sent(self):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        assert not await dispatcher.dispatch(self._change("ACTIVE", "EVALUATION"))
        assert notifier.sent == []

    async def test_notifier_failure_is_swallowed(self, caplog):
        dispatcher = NotificationDispatcher(RecordingNotifier(fail=True))

        with caplog.at_level(logging.WARNING):
            assert not await dispatcher.dispatch(self._change("ACTIVE", "ERROR"))
        assert "Notifier failed" in caplog.text

    async def test_notify_created(self):
        notifier = RecordingNotifier()
        assert await NotificationDispatcher(notifier).notify_created(42)
        assert notifier.titles == ["Agent Run #42 • Started"]

    async def test_custom_policy(self):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier, policy=lambda run_id, old, new: created_decision(run_id))

        assert await dispatcher.dispatch(self._change(None, "ACTIVE"))


class TestLoggingNotifier:
    async def test_levels_follow_severity(self, caplog):
        notifier = LoggingNotifier(logging.getLogger("run_tracker.test.notify"))

        with caplog.at_level(logging.INFO, logger="run_tracker.test.notify"):
            await notifier.notify("Done", "ok", Severity.SUCCESS)
            await notifier.notify("Broke", "bad", Severity.FAILURE)

        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels == [(logging.INFO, "Done: ok"), (logging.WARNING, "Broke: bad")]


class FakeResponse:
    def __init__(self, status):
        self.status = status

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.posts = []
        self.closed = False

    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append({"url": url, "data": data, "headers": headers})
        return FakeResponse(self.statuses.pop(0))

    async def close(self):
        self.closed = True


class TestWebhookNotifier:
    """Tests for webhook delivery against a fake session."""

    async def test_posts_json(self):
        notifier = WebhookNotifier(url="https://hooks.example.com/runs")
        notifier._session = FakeSession([200])

        await notifier.notify("Agent Run #42 • Complete", "done", Severity.SUCCESS)

        [post] = notifier._session.posts
        body = json.loads(post["data"])
        assert post["url"] == "https://hooks.example.com/runs"
        assert body["title"] == "Agent Run #42 • Complete"
        assert body["severity"] == "success"
        assert "X-Webhook-Signature" not in post["headers"]

    async def test_signs_payload(self):
        notifier = WebhookNotifier(url="https://hooks.example.com/runs", secret="s3cret")
        notifier._session = FakeSession([204])

        await notifier.notify("t", "m", Severity.FAILURE)

        assert notifier._session.posts[0]["headers"]["X-Webhook-Signature"].startswith("sha256=")

    async def test_retries_then_gives_up(self, caplog):
        notifier = WebhookNotifier(url="https://hooks.example.com/runs", max_retries=2, backoff_base=0)
        notifier._session = FakeSession([500, 502])

        with caplog.at_level(logging.WARNING):
            await notifier.notify("t", "m", Severity.SUCCESS)

        assert len(notifier._session.posts) == 2
        assert "after 2 attempts: HTTP 502" in caplog.text

    async def test_close(self):
        notifier = WebhookNotifier(url="https://hooks.example.com/runs")
        session = FakeSession([])
        notifier._session = session

        await notifier.close()
        assert session.closed

"""
Tests for structured logging.
"""
import json
import logging

from run_tracker.errors import ErrorContext, TransportError
from run_tracker.logging import (
    JSONFormatter,
    LogContext,
    PassLog,
    StructuredLogger,
    SyncLog,
    TextFormatter,
    Timer,
    configure_logging,
    generate_trace_id,
    get_logger,
    redact_token,
    timed,
)


class TestLogContext:
    def test_to_dict_drops_empty_fields(self):
        ctx = LogContext(organization_id=7, extra={"pass": 3})
        assert ctx.to_dict() == {"organization_id": 7, "pass": 3}

    def test_with_update_merges_extra(self):
        ctx = LogContext(run_id=1, extra={"a": 1}).with_update(operation="sync", extra={"b": 2})

        assert ctx.run_id == 1
        assert ctx.operation == "sync"
        assert ctx.extra == {"a": 1, "b": 2}


class TestStructuredLogger:
    """Test the structured logger against caplog."""

    def _logger(self, name, json_output=False):
        return StructuredLogger(name, level="DEBUG", json_output=json_output)

    def test_trace_context_is_scoped(self, caplog):
        log = self._logger("run_tracker.test.trace")

        with caplog.at_level(logging.INFO, logger="run_tracker.test.trace"):
            with log.trace_context(trace_id="trace_abc", organization_id=7):
                log.info("inside")
            log.info("outside")

        inside, outside = [r.getMessage() for r in caplog.records]
        assert "trace_id=trace_abc" in inside
        assert "organization_id=7" in inside
        assert "trace_id" not in outside

    def test_json_output(self, caplog):
        log = self._logger("run_tracker.test.json", json_output=True)

        with caplog.at_level(logging.INFO, logger="run_tracker.test.json"):
            log.info("hello", runs=3)

        payload = json.loads(caplog.records[0].getMessage())
        assert payload == {"message": "hello", "runs": 3}

    def test_log_error_expands_run_tracker_errors(self, caplog):
        log = self._logger("run_tracker.test.error", json_output=True)
        err = TransportError("reset", context=ErrorContext(organization_id=7, run_id=42))

        with caplog.at_level(logging.ERROR, logger="run_tracker.test.error"):
            log.log_error(err)

        payload = json.loads(caplog.records[0].getMessage())
        assert payload["error_code"] == "ERR_1000"
        assert payload["retryable"] is True
        assert payload["error_context"]["run_id"] == 42

    def test_pass_with_failures_logs_warning(self, caplog):
        log = self._logger("run_tracker.test.pass")

        with caplog.at_level(logging.INFO, logger="run_tracker.test.pass"):
            log.log_pass(PassLog(organizations=2, failed_organizations=[7], duration_ms=12.0))
            log.log_pass(PassLog(organizations=2))

        assert [r.levelno for r in caplog.records] == [logging.WARNING, logging.INFO]
        assert "(12ms)" in caplog.records[0].getMessage()

    def test_sync_levels(self, caplog):
        log = self._logger("run_tracker.test.sync")

        with caplog.at_level(logging.INFO, logger="run_tracker.test.sync"):
            log.log_sync(SyncLog(organization_id=7, status="success", runs=3))
            log.log_sync(SyncLog(organization_id=7, status="error", error="boom"))

        assert [r.levelno for r in caplog.records] == [logging.INFO, logging.WARNING]


class TestFormatters:
    def _record(self, message):
        return logging.LogRecord("run_tracker", logging.INFO, __file__, 1, message, None, None)

    def test_json_formatter_merges_json_messages(self):
        out = json.loads(JSONFormatter().format(self._record('{"message": "hi", "runs": 2}')))

        assert out["runs"] == 2
        assert out["level"] == "INFO"

    def test_json_formatter_plain_message(self):
        out = json.loads(JSONFormatter().format(self._record("plain")))
        assert out["message"] == "plain"

    def test_text_formatter_without_color(self):
        line = TextFormatter(use_color=False).format(self._record("plain"))
        assert line.endswith("INFO     run_tracker: plain")
        assert "\033[" not in line


class TestUtilities:
    def test_trace_ids_are_unique(self):
        assert generate_trace_id() != generate_trace_id()
        assert generate_trace_id().startswith("trace_")

    def test_redact_token(self):
        assert redact_token(None) == "<not set>"
        assert redact_token("short") == "***"
        assert redact_token("sk-1234567890abcd") == "sk-1...abcd"

    def test_timed(self):
        with timed() as timer:
            pass
        assert isinstance(timer, Timer)
        assert timer.end_time is not None
        assert timer.elapsed_ms >= 0

    def test_get_and_configure_logger(self):
        log = configure_logging(level="WARNING", json_output=True)

        assert log.json_output
        assert get_logger() is log

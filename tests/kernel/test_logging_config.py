"""Tests for structured logging: JSON envelope, context binding, redaction."""

import json
import logging
from io import StringIO

from feedsync_kernel.exceptions import SourceFetchError
from feedsync_kernel.logging_config import (
    GENERIC_ERROR_MESSAGE,
    LogContext,
    StructuredFormatter,
    get_logger,
    sanitize_error_message,
    sanitize_for_log,
)


def _format(record: logging.LogRecord) -> dict:
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:

    def test_envelope_and_extra_fields(self):
        record = logging.LogRecord("feedsync.sync.executor", logging.INFO, "", 0, "sync_run_started", (), None)
        record.rows_total = 3
        payload = _format(record)
        assert payload["level"] == "INFO"
        assert payload["logger"] == "feedsync.sync.executor"
        assert payload["message"] == "sync_run_started"
        assert payload["rows_total"] == 3
        assert "ts" in payload

    def test_context_fields_are_included(self):
        record = logging.LogRecord("feedsync.x", logging.INFO, "", 0, "evt", (), None)
        with LogContext.bind(feed_key="posvenda_llc", run_id="abc"):
            payload = _format(record)
        assert payload["feed_key"] == "posvenda_llc"
        assert payload["run_id"] == "abc"

    def test_exception_fields_are_flattened(self):
        exc = SourceFetchError("google_sheets:sheet", "403 forbidden")
        record = logging.LogRecord(
            "feedsync.x", logging.ERROR, "", 0, "failed", (), (type(exc), exc, None),
        )
        payload = _format(record)
        assert payload["exc_type"] == "SourceFetchError"
        assert payload["exc_code"] == "SOURCE_FETCH_FAILED"
        assert payload["exc_reason"] == "403 forbidden"


class TestLogContext:

    def test_bind_restores_previous_values(self):
        LogContext.set(feed_key="outer")
        with LogContext.bind(feed_key="inner", actor="cli"):
            assert LogContext.get_all() == {"feed_key": "inner", "actor": "cli"}
        assert LogContext.get_all() == {"feed_key": "outer"}

    def test_clear(self):
        LogContext.set(run_id="r1", trigger="cron")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestGetLogger:

    def test_loggers_live_under_feedsync_namespace(self, captured_logs):
        get_logger("tests.area").info("hello_event", extra={"count": 2})
        records = [r for r in captured_logs() if r["message"] == "hello_event"]
        assert records[0]["logger"] == "feedsync.tests.area"
        assert records[0]["count"] == 2


class TestSanitizers:

    def test_secret_like_keys_are_redacted(self):
        out = sanitize_for_log({"trigger_secret": "s3", "session_token": "t", "feed_key": "k"})
        assert out == {"trigger_secret": "[REDACTED]", "session_token": "[REDACTED]", "feed_key": "k"}

    def test_error_message_truncated_in_development(self):
        assert sanitize_error_message("x" * 800, development=True) == "x" * 500

    def test_error_message_hidden_outside_development(self):
        assert sanitize_error_message("db password wrong", development=False) == GENERIC_ERROR_MESSAGE


def test_formatter_handles_uuid_and_dates():
    from datetime import date
    from uuid import uuid4

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    log = logging.getLogger("feedsync_test_isolated")
    log.addHandler(handler)
    log.setLevel(logging.INFO)
    try:
        run_id = uuid4()
        log.info("evt", extra={"run": run_id, "day": date(2026, 3, 1)})
    finally:
        log.removeHandler(handler)
    payload = json.loads(stream.getvalue())
    assert payload["run"] == str(run_id)
    assert payload["day"] == "2026-03-01"

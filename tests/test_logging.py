"""
Tests for structured logging helpers.
"""

import json
import logging

from draftdesk.shared.infrastructure.logging import (
    CorrelationIdFilter,
    CustomJsonFormatter,
    get_correlation_id,
    log_latency,
    set_correlation_id,
)


def _format(extra: dict) -> dict:
    record = logging.LogRecord("draftdesk.test", logging.INFO, __file__, 1, "Draft generated", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    CorrelationIdFilter().filter(record)
    formatter = CustomJsonFormatter(fmt="%(name)s %(levelname)s %(message)s", environment="staging")
    return json.loads(formatter.format(record))


class TestCustomJsonFormatter:

    def test_adds_environment_and_correlation_id(self):
        set_correlation_id("req_123")
        try:
            entry = _format({"chat_id": "chat-001"})
        finally:
            set_correlation_id(None)

        assert entry["message"] == "Draft generated"
        assert entry["environment"] == "staging"
        assert entry["correlation_id"] == "req_123"
        assert entry["chat_id"] == "chat-001"
        assert "timestamp" in entry

    def test_redacts_secrets_but_not_token_counts(self):
        entry = _format({"api_key": "sk-live", "bot_token": "xoxb", "prompt_tokens": 120})

        assert entry["api_key"] == "***REDACTED***"
        assert entry["bot_token"] == "***REDACTED***"
        assert entry["prompt_tokens"] == 120

    def test_no_correlation_id_outside_requests(self):
        assert "correlation_id" not in _format({})


def test_correlation_id_round_trips_through_context():
    set_correlation_id("req_abc")
    try:
        assert get_correlation_id() == "req_abc"
    finally:
        set_correlation_id(None)

    assert get_correlation_id() is None


def test_log_latency_records_elapsed_time(caplog):
    logger = logging.getLogger("draftdesk.test")

    with caplog.at_level(logging.INFO, logger="draftdesk.test"):
        with log_latency(logger, "retrieval", chat_id="chat-001") as timing:
            pass

    assert timing["latency_ms"] >= 0
    record = caplog.records[-1]
    assert record.operation == "retrieval"
    assert record.chat_id == "chat-001"

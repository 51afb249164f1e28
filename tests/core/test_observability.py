"""Tests for audit records, correlation ids and credential redaction."""

import json
import logging

import pytest

from research_resilience.core.context import (
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)
from research_resilience.core.observability import (
    AuditEvent,
    AuditEventType,
    audit_log,
    get_audit_logger,
    redact_for_logging,
    redact_sensitive_data,
)


def _audit_records(caplog):
    return [r.audit for r in caplog.records if hasattr(r, "audit")]


class TestCorrelation:
    def test_scope_binds_and_restores(self):
        assert get_correlation_id() == ""
        with correlation_scope("abc") as bound:
            assert bound == "abc"
            assert get_correlation_id() == "abc"
        assert get_correlation_id() == ""

    def test_scope_generates_id(self):
        with correlation_scope() as bound:
            assert len(bound) == 32
            assert get_correlation_id() == bound

    def test_nested_scopes(self):
        with correlation_scope("outer"):
            with correlation_scope("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"

    def test_set_correlation_id(self):
        with correlation_scope("outer"):
            set_correlation_id("replaced")
            assert get_correlation_id() == "replaced"
        assert get_correlation_id() == ""


class TestAuditEvents:
    def test_event_picks_up_correlation_id(self):
        with correlation_scope("req-1"):
            event = AuditEvent(event_type=AuditEventType.RETRY_ATTEMPT, details={"attempt": 1})
        data = event.to_dict()
        assert data["correlation_id"] == "req-1"
        assert data["event_type"] == "retry_attempt"
        assert data["details"] == {"attempt": 1}

    def test_event_without_correlation_id(self):
        data = AuditEvent(event_type=AuditEventType.HEALTH_CHECK).to_dict()
        assert "correlation_id" not in data
        assert data["timestamp"]

    def test_audit_log_writes_to_audit_logger(self, caplog):
        with caplog.at_level(logging.INFO, logger="research_resilience"):
            audit_log("rate_limit_wait", endpoint="jina", wait_ms=100)
        record = caplog.records[-1]
        assert record.name == "research_resilience.core.observability.audit.audit"
        assert record.getMessage() == "AUDIT: rate_limit_wait"
        assert record.audit["details"] == {"endpoint": "jina", "wait_ms": 100}

    def test_unknown_event_type_is_preserved(self, caplog):
        with caplog.at_level(logging.INFO, logger="research_resilience"):
            audit_log("cache_miss", endpoint="jina")
        audit = _audit_records(caplog)[-1]
        assert audit["event_type"] == "invocation_failure"
        assert audit["details"]["original_event_type"] == "cache_miss"

    @pytest.mark.parametrize(
        "new_state, level",
        [("open", logging.WARNING), ("half_open", logging.INFO), ("closed", logging.INFO)],
    )
    def test_state_change_levels(self, caplog, new_state, level):
        with caplog.at_level(logging.INFO, logger="research_resilience"):
            get_audit_logger().circuit_state_change("jina", "closed", new_state)
        assert caplog.records[-1].levelno == level


class TestRedaction:
    @pytest.mark.parametrize(
        "text, secret, label",
        [
            ("key sk-ant-REDACTED", "sk-ant-REDACTED", "ANTHROPIC_KEY"),
            ("token jina_abcdefghijklmnopqrstuvwxyz", "jina_abcdefghijklmnopqrstuvwxyz", "JINA_KEY"),
            ("Authorization: Bearer abc.def-ghi", "abc.def-ghi", "BEARER_TOKEN"),
            ("contact ops@example.com", "ops@example.com", "EMAIL"),
        ],
    )
    def test_patterns(self, text, secret, label):
        redacted = redact_sensitive_data(text)
        assert secret not in redacted
        assert f"[REDACTED:{label}]" in redacted

    def test_key_value_keeps_key_name(self):
        redacted = redact_sensitive_data("api_key=abcdefgh12345678")
        assert redacted == "api_key=[REDACTED:API_KEY]"

    def test_sensitive_dict_keys(self):
        redacted = redact_sensitive_data({"Authorization": "anything", "endpoint": "jina"})
        assert redacted == {"Authorization": "[REDACTED:AUTHORIZATION]", "endpoint": "jina"}

    def test_nested_structures(self):
        data = {"errors": ["bearer abcdefghij", ("ok",)], "count": 2}
        redacted = redact_sensitive_data(data)
        assert redacted["errors"][0] == "[REDACTED:BEARER_TOKEN]"
        assert redacted["errors"][1] == ("ok",)
        assert redacted["count"] == 2

    def test_depth_limit(self):
        deep = {"a": {"b": {"c": "x"}}}
        assert redact_sensitive_data(deep, max_depth=2) == {"a": {"b": "[MAX_DEPTH_EXCEEDED]"}}

    def test_redact_for_logging_serializes(self):
        line = redact_for_logging({"user_id": "ops@example.com", "retry_count": 1})
        assert json.loads(line) == {"user_id": "[REDACTED:EMAIL]", "retry_count": 1}

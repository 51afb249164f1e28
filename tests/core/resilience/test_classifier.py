"""Tests for failure classification.

The category table is exercised exhaustively: every rule, the rule
priority, and the fallback to PROCESSING_ERROR.
"""

import logging

import httpx
import pytest

from research_resilience.config import RetryConfig
from research_resilience.core.errors import (
    HttpStatusError,
    RequestTimeoutError,
    ResponseParseError,
    TimeBudgetExceededError,
)
from research_resilience.core.resilience import (
    CATEGORY_RULES,
    SEVERITY_BY_CATEGORY,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    FallbackStrategy,
    classify_error,
    determine_category,
    determine_fallback_strategy,
    handle_error,
    is_retryable_error,
)


class UpstreamTimeoutError(Exception):
    pass


class TestDetermineCategory:
    """Table-driven tests for CATEGORY_RULES."""

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Rate limit exceeded for this key", ErrorCategory.RATE_LIMIT_ERROR),
            ("HTTP 429", ErrorCategory.RATE_LIMIT_ERROR),
            ("Too Many Requests", ErrorCategory.RATE_LIMIT_ERROR),
            ("Request timeout after 30s", ErrorCategory.TIMEOUT_ERROR),
            ("operation timed out", ErrorCategory.TIMEOUT_ERROR),
            ("401 Unauthorized", ErrorCategory.AUTHENTICATION_ERROR),
            ("HTTP 403", ErrorCategory.AUTHENTICATION_ERROR),
            ("Forbidden", ErrorCategory.AUTHENTICATION_ERROR),
            ("Network is unreachable", ErrorCategory.NETWORK_ERROR),
            ("Connection reset by peer", ErrorCategory.NETWORK_ERROR),
            ("could not connect to host", ErrorCategory.NETWORK_ERROR),
            ("fetch failed", ErrorCategory.NETWORK_ERROR),
            ("DNS lookup failed", ErrorCategory.NETWORK_ERROR),
            ("ECONNREFUSED: refused", ErrorCategory.NETWORK_ERROR),
            ("Validation failed for field industry", ErrorCategory.VALIDATION_ERROR),
            ("Invalid company identifier", ErrorCategory.VALIDATION_ERROR),
            ("API error 418: teapot", ErrorCategory.API_FAILURE),
            ("upstream returned 500", ErrorCategory.API_FAILURE),
            ("upstream returned 502", ErrorCategory.API_FAILURE),
            ("upstream returned 503", ErrorCategory.API_FAILURE),
            ("upstream returned 504", ErrorCategory.API_FAILURE),
            ("Unexpected data shape", ErrorCategory.DATA_QUALITY),
            ("Failed to parse JSON", ErrorCategory.DATA_QUALITY),
            ("Unsupported format", ErrorCategory.DATA_QUALITY),
            ("Something odd occurred", ErrorCategory.PROCESSING_ERROR),
            ("", ErrorCategory.PROCESSING_ERROR),
        ],
    )
    def test_message_table(self, message, expected):
        assert determine_category(message) == expected

    def test_matching_is_case_insensitive(self):
        assert determine_category("RATE LIMIT") == ErrorCategory.RATE_LIMIT_ERROR

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("timeout while handling 429", ErrorCategory.RATE_LIMIT_ERROR),
            ("401 after connection timed out", ErrorCategory.TIMEOUT_ERROR),
            ("connection rejected: invalid token", ErrorCategory.NETWORK_ERROR),
            ("invalid api response", ErrorCategory.VALIDATION_ERROR),
            ("api returned malformed data", ErrorCategory.API_FAILURE),
        ],
    )
    def test_first_matching_rule_wins(self, message, expected):
        assert determine_category(message) == expected

    def test_rules_cover_every_category_but_processing(self):
        covered = {category for category, _ in CATEGORY_RULES}
        assert covered == set(ErrorCategory) - {ErrorCategory.PROCESSING_ERROR}

    @pytest.mark.parametrize(
        "error, expected",
        [
            (UpstreamTimeoutError("boom"), ErrorCategory.TIMEOUT_ERROR),
            (httpx.ConnectError("boom"), ErrorCategory.NETWORK_ERROR),
            (httpx.ReadTimeout("boom"), ErrorCategory.TIMEOUT_ERROR),
            (RequestTimeoutError("Request timeout after 1.00s"), ErrorCategory.TIMEOUT_ERROR),
            (
                TimeBudgetExceededError("Invocation of jina timed out: time budget of 5.00s exhausted"),
                ErrorCategory.TIMEOUT_ERROR,
            ),
            (HttpStatusError(503, "Service Unavailable"), ErrorCategory.API_FAILURE),
            (HttpStatusError(401), ErrorCategory.AUTHENTICATION_ERROR),
            (HttpStatusError(429, "slow down"), ErrorCategory.RATE_LIMIT_ERROR),
            (ResponseParseError("Could not parse response data as JSON"), ErrorCategory.DATA_QUALITY),
            (KeyError("summary"), ErrorCategory.PROCESSING_ERROR),
        ],
    )
    def test_exceptions_match_on_message_and_class_name(self, error, expected):
        assert determine_category(error) == expected


class TestSeverityAndStrategy:
    @pytest.mark.parametrize(
        "category, severity",
        [
            (ErrorCategory.AUTHENTICATION_ERROR, ErrorSeverity.CRITICAL),
            (ErrorCategory.API_FAILURE, ErrorSeverity.CRITICAL),
            (ErrorCategory.RATE_LIMIT_ERROR, ErrorSeverity.HIGH),
            (ErrorCategory.TIMEOUT_ERROR, ErrorSeverity.HIGH),
            (ErrorCategory.NETWORK_ERROR, ErrorSeverity.MEDIUM),
            (ErrorCategory.PROCESSING_ERROR, ErrorSeverity.MEDIUM),
            (ErrorCategory.DATA_QUALITY, ErrorSeverity.LOW),
            (ErrorCategory.VALIDATION_ERROR, ErrorSeverity.LOW),
        ],
    )
    def test_severity_table(self, category, severity):
        assert SEVERITY_BY_CATEGORY[category] == severity

    @pytest.mark.parametrize(
        "category, retry_count, strategy",
        [
            (ErrorCategory.RATE_LIMIT_ERROR, 0, FallbackStrategy.RETRY_WITH_BACKOFF),
            (ErrorCategory.TIMEOUT_ERROR, 5, FallbackStrategy.RETRY_WITH_BACKOFF),
            (ErrorCategory.NETWORK_ERROR, 0, FallbackStrategy.RETRY_WITH_BACKOFF),
            (ErrorCategory.API_FAILURE, 0, FallbackStrategy.RETRY_WITH_BACKOFF),
            (ErrorCategory.API_FAILURE, 2, FallbackStrategy.RETRY_WITH_BACKOFF),
            (ErrorCategory.API_FAILURE, 3, FallbackStrategy.PROFESSIONAL_RESPONSE),
            (ErrorCategory.DATA_QUALITY, 0, FallbackStrategy.PROFESSIONAL_RESPONSE),
            (ErrorCategory.PROCESSING_ERROR, 0, FallbackStrategy.PROFESSIONAL_RESPONSE),
            (ErrorCategory.AUTHENTICATION_ERROR, 0, FallbackStrategy.MANUAL_REVIEW),
            (ErrorCategory.VALIDATION_ERROR, 0, FallbackStrategy.MANUAL_REVIEW),
        ],
    )
    def test_strategy_table(self, category, retry_count, strategy):
        context = ErrorContext(retry_count=retry_count)
        assert determine_fallback_strategy(category, context) == strategy


class TestClassifyError:
    def test_authentication_is_not_recoverable(self):
        enhanced = classify_error("401 Unauthorized")
        assert enhanced.category == ErrorCategory.AUTHENTICATION_ERROR
        assert enhanced.severity == ErrorSeverity.CRITICAL
        assert enhanced.fallback_strategy == FallbackStrategy.MANUAL_REVIEW
        assert enhanced.recoverable is False

    @pytest.mark.parametrize(
        "message",
        ["rate limit", "timeout", "network", "invalid", "api", "parse", "mystery"],
    )
    def test_everything_else_is_recoverable(self, message):
        assert classify_error(message).recoverable is True

    def test_user_message_is_templated_and_clean(self):
        context = ErrorContext(company_name="Acme Ltd", job_type="due_diligence")
        error = HttpStatusError(503, "Traceback: internal stack frame at worker-7")
        enhanced = classify_error(error, context)
        assert "Acme Ltd" in enhanced.user_message
        assert "503" not in enhanced.user_message
        assert "Traceback" not in enhanced.user_message
        assert "worker-7" not in enhanced.user_message

    def test_user_message_uses_job_label(self):
        context = ErrorContext(company_name="Acme Ltd", job_type="due_diligence")
        enhanced = classify_error("request timed out", context)
        assert "due diligence analysis for Acme Ltd" in enhanced.user_message

    def test_user_message_default_subject(self):
        enhanced = classify_error("rate limit")
        assert "the company" in enhanced.user_message

    @pytest.mark.parametrize("category", list(ErrorCategory))
    def test_every_category_has_message_and_actions(self, category):
        sample = {
            ErrorCategory.RATE_LIMIT_ERROR: "rate limit",
            ErrorCategory.TIMEOUT_ERROR: "timed out",
            ErrorCategory.AUTHENTICATION_ERROR: "unauthorized",
            ErrorCategory.NETWORK_ERROR: "network down",
            ErrorCategory.VALIDATION_ERROR: "validation",
            ErrorCategory.API_FAILURE: "api",
            ErrorCategory.DATA_QUALITY: "parse",
            ErrorCategory.PROCESSING_ERROR: "mystery",
        }[category]
        enhanced = classify_error(sample, ErrorContext(company_name="Acme Ltd"))
        assert enhanced.category == category
        assert enhanced.user_message
        assert len(enhanced.suggested_actions) >= 3

    def test_rate_limit_actions(self):
        actions = classify_error("rate limit").suggested_actions
        assert actions[0] == "Wait for automatic retry with exponential backoff"

    def test_original_error_and_technical_details(self):
        try:
            raise ValueError("could not parse payload")
        except ValueError as e:
            enhanced = classify_error(e, ErrorContext(job_id="job-1"))
        assert enhanced.original_error is not None
        details = enhanced.technical_details
        assert details["error_type"] == "ValueError"
        assert "Traceback" in details["stack_trace"]
        assert details["context"]["job_id"] == "job-1"
        assert details["timestamp"]

    def test_string_error_details(self):
        enhanced = classify_error("mystery")
        assert enhanced.original_error is None
        assert enhanced.technical_details["error_type"] == "Unknown"
        assert enhanced.technical_details["stack_trace"] is None

    def test_secrets_redacted_from_technical_details(self):
        enhanced = classify_error("401 for x-api-key: sk-ant-REDACTED")
        assert "sk-ant-REDACTED" not in enhanced.technical_details["message"]
        assert "REDACTED" in enhanced.technical_details["message"]

    def test_to_dict_omits_original_error(self):
        data = classify_error(ValueError("bad data"), ErrorContext(company_name="Acme")).to_dict()
        assert data["category"] == "data_quality"
        assert data["fallback_strategy"] == "professional_response"
        assert data["context"]["company_name"] == "Acme"
        assert "original_error" not in data
        assert "technical_details" not in data


class TestIsRetryableError:
    @pytest.mark.parametrize(
        "error",
        [
            "Request timeout after 30s",
            "socket timed out",
            "network unreachable",
            "Connection refused",
            "ECONNRESET",
            "getaddrinfo ENOTFOUND api.example.com",
            "Name or service not known",
            httpx.ConnectError("boom"),
            RequestTimeoutError("Request timeout after 1.00s"),
        ],
    )
    def test_retryable(self, error):
        assert is_retryable_error(error) is True

    @pytest.mark.parametrize("error", ["Invalid JSON", ValueError("bad input"), "401 Unauthorized"])
    def test_not_retryable(self, error):
        assert is_retryable_error(error) is False

    def test_custom_patterns(self):
        config = RetryConfig(retryable_errors=("overloaded",))
        assert is_retryable_error("Model overloaded", config) is True
        assert is_retryable_error("connection reset", config) is False


class TestHandleError:
    def test_emits_structured_failure_record(self, caplog):
        context = ErrorContext(api_endpoint="jina", job_id="job-9", retry_count=2)
        with caplog.at_level(logging.INFO, logger="research_resilience"):
            enhanced = handle_error(HttpStatusError(503, "bearer abcdefghijklmnopqrstuvwxyz123"), context)
        records = [r for r in caplog.records if hasattr(r, "audit")]
        assert len(records) == 1
        audit = records[0].audit
        assert audit["event_type"] == "invocation_failure"
        assert audit["details"]["endpoint"] == "jina"
        assert audit["details"]["category"] == enhanced.category.value
        assert audit["details"]["severity"] == "critical"
        assert audit["details"]["job_id"] == "job-9"
        assert "abcdefghijklmnopqrstuvwxyz123" not in audit["details"]["message"]
        assert records[0].levelno == logging.ERROR

    def test_non_critical_logged_as_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="research_resilience"):
            handle_error("network down", ErrorContext(api_endpoint="claude"))
        records = [r for r in caplog.records if hasattr(r, "audit")]
        assert records[0].levelno == logging.WARNING

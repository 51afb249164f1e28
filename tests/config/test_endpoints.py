"""Tests for endpoint configuration and retry policy resolution."""

import pytest

from research_resilience.config import (
    DEFAULT_RETRY_CONFIG,
    ENDPOINT_CONFIGS,
    EndpointConfig,
    RetryConfig,
    get_endpoint_config,
    normalize_endpoint_name,
    resolve_retry_config,
)


class TestEndpointTable:
    """Tests for the built-in endpoint table."""

    def test_jina_defaults(self):
        """Deep research endpoint has the long timeout and 2s base delay."""
        config = ENDPOINT_CONFIGS["jina"]
        assert config.url == "https://deepsearch.jina.ai/v1/chat/completions"
        assert config.timeout == 120.0
        assert config.max_attempts == 3
        assert config.retry_delay == 2.0
        assert config.circuit_breaker_threshold == 5
        assert config.health_check_interval == 60.0

    def test_claude_defaults(self):
        config = ENDPOINT_CONFIGS["claude"]
        assert config.url == "https://api.anthropic.com/v1/messages"
        assert config.timeout == 60.0
        assert config.retry_delay == 1.0

    def test_endpoint_config_is_frozen(self):
        config = EndpointConfig(name="x")
        with pytest.raises(AttributeError):
            config.timeout = 5.0  # type: ignore[misc]


class TestGetEndpointConfig:
    """Tests for name normalization and alias resolution."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("jina", "jina"),
            ("  JINA ", "jina"),
            ("jina_api", "jina"),
            ("research-search", "jina"),
            ("Claude_API", "claude"),
            ("completion", "claude"),
        ],
    )
    def test_aliases(self, name, expected):
        assert get_endpoint_config(name).name == expected

    def test_unknown_name_gets_default_config(self):
        """Unknown endpoints get defaults named after the normalized key."""
        config = get_endpoint_config("  Internal-Search ")
        assert config == EndpointConfig(name="internal-search")

    def test_custom_table(self):
        table = {"search": EndpointConfig(name="search", timeout=3.0)}
        assert get_endpoint_config("SEARCH", table).timeout == 3.0

    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, name):
        with pytest.raises(ValueError):
            normalize_endpoint_name(name)


class TestRetryConfig:
    """Tests for RetryConfig defaults and validation."""

    def test_defaults(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 30.0
        assert config.backoff_multiplier == 2.0
        assert config.retryable_status_codes == frozenset({408, 429, 500, 502, 503, 504})
        assert "econnreset" in config.retryable_errors

    def test_zero_attempts_rejected(self):
        with pytest.raises(ValueError, match="max_attempts"):
            RetryConfig(max_attempts=0)

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            RetryConfig(base_delay=-1.0)


class TestResolveRetryConfig:
    """Tests for merging endpoint defaults with per-call overrides."""

    def test_seeded_from_endpoint(self):
        config = resolve_retry_config(ENDPOINT_CONFIGS["jina"])
        assert config.max_attempts == 3
        assert config.base_delay == 2.0
        assert config.max_delay == DEFAULT_RETRY_CONFIG.max_delay

    def test_full_override_used_as_is(self):
        override = RetryConfig(max_attempts=7, base_delay=0.5)
        assert resolve_retry_config(ENDPOINT_CONFIGS["jina"], override) is override

    def test_partial_override(self):
        config = resolve_retry_config(
            ENDPOINT_CONFIGS["claude"],
            {"max_attempts": 5, "retryable_status_codes": [503]},
        )
        assert config.max_attempts == 5
        assert config.base_delay == 1.0
        assert config.retryable_status_codes == frozenset({503})

    def test_unknown_override_key_rejected(self):
        with pytest.raises(ValueError, match="max_retries"):
            resolve_retry_config(ENDPOINT_CONFIGS["claude"], {"max_retries": 5})

    def test_invalid_override_value_rejected(self):
        with pytest.raises(ValueError):
            resolve_retry_config(ENDPOINT_CONFIGS["claude"], {"max_attempts": 0})

"""Endpoint and retry configuration for external research services.

Maps logical endpoint names to tuned EndpointConfig instances and resolves
per-call retry policy from endpoint defaults plus caller overrides.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping, Optional, Union


@dataclass(frozen=True)
class EndpointConfig:
    """Immutable configuration for one logical external service.

    Timeouts and delays are in seconds. ``health_check_interval`` doubles as
    the circuit breaker cooldown.
    """

    name: str
    url: str = ""
    timeout: float = 30.0
    max_attempts: int = 3
    retry_delay: float = 1.0
    circuit_breaker_threshold: int = 5
    health_check_interval: float = 60.0


@dataclass(frozen=True)
class RetryConfig:
    """Per-call retry policy.

    Supplied per call as a full instance or a partial mapping; missing
    fields come from the endpoint and DEFAULT_RETRY_CONFIG.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: frozenset({408, 429, 500, 502, 503, 504})
    )
    retryable_errors: tuple[str, ...] = (
        "timeout",
        "timed out",
        "network",
        "connection",
        "connect",
        "econnreset",
        "reset",
        "enotfound",
        "name or service not known",
        "nodename nor servname",
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must be non-negative")
        if self.backoff_multiplier < 1.0:
            raise ValueError(
                f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}"
            )


DEFAULT_RETRY_CONFIG = RetryConfig()

# Built-in endpoints with tuned defaults
ENDPOINT_CONFIGS: dict[str, EndpointConfig] = {
    "jina": EndpointConfig(
        name="jina",
        url="https://deepsearch.jina.ai/v1/chat/completions",
        timeout=120.0,  # Deep research runs with an unlimited token budget
        max_attempts=3,
        retry_delay=2.0,
        circuit_breaker_threshold=5,
        health_check_interval=60.0,
    ),
    "claude": EndpointConfig(
        name="claude",
        url="https://api.anthropic.com/v1/messages",
        timeout=60.0,
        max_attempts=3,
        retry_delay=1.0,
        circuit_breaker_threshold=5,
        health_check_interval=60.0,
    ),
}

ENDPOINT_ALIASES: dict[str, str] = {
    "jina_api": "jina",
    "research-search": "jina",
    "claude_api": "claude",
    "completion": "claude",
}

_RETRY_FIELDS = frozenset(f.name for f in fields(RetryConfig))


def normalize_endpoint_name(name: str) -> str:
    """Normalize an endpoint name and resolve aliases.

    Raises:
        ValueError: If the name is empty.
    """
    normalized = (name or "").strip().lower()
    if not normalized:
        raise ValueError("endpoint name must be a non-empty string")
    return ENDPOINT_ALIASES.get(normalized, normalized)


def get_endpoint_config(
    name: str,
    configs: Optional[Mapping[str, EndpointConfig]] = None,
) -> EndpointConfig:
    """Get configuration for an endpoint.

    Args:
        name: Endpoint name or alias (e.g., 'jina', 'CLAUDE_API')
        configs: Endpoint table to search (defaults to ENDPOINT_CONFIGS)

    Returns:
        Configured endpoint, or a default config named after the endpoint
    """
    table = ENDPOINT_CONFIGS if configs is None else configs
    key = normalize_endpoint_name(name)
    return table.get(key) or EndpointConfig(name=key)


def resolve_retry_config(
    endpoint: EndpointConfig,
    override: Optional[Union[RetryConfig, Mapping[str, Any]]] = None,
) -> RetryConfig:
    """Build the effective retry policy for one call.

    Endpoint attempts and base delay seed DEFAULT_RETRY_CONFIG; a full
    RetryConfig override replaces it, a mapping patches individual fields.

    Raises:
        ValueError: If the mapping names a field RetryConfig does not have.
    """
    if isinstance(override, RetryConfig):
        return override

    base = replace(
        DEFAULT_RETRY_CONFIG,
        max_attempts=endpoint.max_attempts,
        base_delay=endpoint.retry_delay,
    )
    if not override:
        return base

    unknown = set(override) - _RETRY_FIELDS
    if unknown:
        raise ValueError(f"Unknown retry config fields: {', '.join(sorted(unknown))}")

    changes = dict(override)
    if "retryable_status_codes" in changes:
        changes["retryable_status_codes"] = frozenset(changes["retryable_status_codes"])
    if "retryable_errors" in changes:
        changes["retryable_errors"] = tuple(changes["retryable_errors"])
    return replace(base, **changes)

"""Configuration for the resilient call layer."""

from research_resilience.config.endpoints import (
    DEFAULT_RETRY_CONFIG,
    ENDPOINT_ALIASES,
    ENDPOINT_CONFIGS,
    EndpointConfig,
    RetryConfig,
    get_endpoint_config,
    normalize_endpoint_name,
    resolve_retry_config,
)
from research_resilience.config.settings import (
    ResilienceSettings,
    get_settings,
    set_settings,
)

__all__ = [
    "DEFAULT_RETRY_CONFIG",
    "ENDPOINT_ALIASES",
    "ENDPOINT_CONFIGS",
    "EndpointConfig",
    "RetryConfig",
    "get_endpoint_config",
    "normalize_endpoint_name",
    "resolve_retry_config",
    "ResilienceSettings",
    "get_settings",
    "set_settings",
]

"""Resilient invocation of external research and LLM endpoints.

Per-endpoint circuit breaking, local rate limiting, bounded retries with
backoff, failure classification and professional fallback answers:
- ResilientInvoker, the single entry point (``invoke``)
- ResilienceRegistry, the injectable owner of per-endpoint state
- Classifier and fallback helpers, usable on their own
"""

from research_resilience.core.resilience.backoff import (
    compute_backoff_delay,
    extract_rate_limit_headers,
    parse_retry_after,
)
from research_resilience.core.resilience.circuit_breaker import CircuitBreaker
from research_resilience.core.resilience.classifier import (
    CATEGORY_RULES,
    SEVERITY_BY_CATEGORY,
    classify_error,
    determine_category,
    determine_fallback_strategy,
    determine_severity,
    handle_error,
    is_retryable_error,
)
from research_resilience.core.resilience.fallback import (
    MAX_RETRY_ATTEMPTS,
    FallbackGenerator,
    generate_fallback,
    generate_professional_limited_data_response,
    rate_limit_fallback,
    server_error_fallback,
)
from research_resilience.core.resilience.health import check_endpoints_health
from research_resilience.core.resilience.invoker import (
    ResilientInvoker,
    get_circuit_breaker_status,
    get_default_invoker,
    invoke,
    perform_health_check,
    reset_circuit_breaker,
)
from research_resilience.core.resilience.models import (
    ApiResult,
    CircuitBreakerMetrics,
    CircuitState,
    DataQualityMetrics,
    EnhancedError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    FallbackStrategy,
    ProfessionalResponse,
    ResponseLike,
    SleepFunc,
    ValidationResult,
    VerificationLevel,
)
from research_resilience.core.resilience.quality import (
    calculate_data_quality_metrics,
    validate_data_quality,
)
from research_resilience.core.resilience.rate_limiter import RateLimiter
from research_resilience.core.resilience.registry import (
    ResilienceRegistry,
    get_default_registry,
    reset_default_registry_for_testing,
)

__all__ = [
    # Models & enums
    "ApiResult",
    "CircuitBreakerMetrics",
    "CircuitState",
    "DataQualityMetrics",
    "EnhancedError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "FallbackStrategy",
    "ProfessionalResponse",
    "ResponseLike",
    "SleepFunc",
    "ValidationResult",
    "VerificationLevel",
    # Backoff
    "compute_backoff_delay",
    "extract_rate_limit_headers",
    "parse_retry_after",
    # State
    "CircuitBreaker",
    "RateLimiter",
    "ResilienceRegistry",
    "get_default_registry",
    "reset_default_registry_for_testing",
    # Classification
    "CATEGORY_RULES",
    "SEVERITY_BY_CATEGORY",
    "classify_error",
    "determine_category",
    "determine_fallback_strategy",
    "determine_severity",
    "handle_error",
    "is_retryable_error",
    # Fallback & quality
    "MAX_RETRY_ATTEMPTS",
    "FallbackGenerator",
    "generate_fallback",
    "generate_professional_limited_data_response",
    "rate_limit_fallback",
    "server_error_fallback",
    "calculate_data_quality_metrics",
    "validate_data_quality",
    # Invocation
    "ResilientInvoker",
    "get_default_invoker",
    "invoke",
    "get_circuit_breaker_status",
    "reset_circuit_breaker",
    "perform_health_check",
    "check_endpoints_health",
]

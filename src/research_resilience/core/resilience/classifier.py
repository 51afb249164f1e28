"""Failure classification for external calls.

Maps a raw failure (exception or message) plus its ErrorContext onto the
failure taxonomy: category, severity, fallback strategy, recoverability,
a user-facing message and remediation hints. Matching is a case-insensitive
substring search driven by ``CATEGORY_RULES``; the first matching rule wins.

User messages never contain the raw error, status codes or stack traces.
Those stay in ``technical_details`` and the structured log record.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional, Union

from research_resilience.config.endpoints import DEFAULT_RETRY_CONFIG, RetryConfig
from research_resilience.core.observability import (
    get_audit_logger,
    redact_for_logging,
    redact_sensitive_data,
)
from research_resilience.core.resilience.models import (
    EnhancedError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    FallbackStrategy,
)

logger = logging.getLogger(__name__)

ErrorInput = Union[BaseException, str]

# Ordered by priority; the first category with a matching term wins.
CATEGORY_RULES: tuple[tuple[ErrorCategory, tuple[str, ...]], ...] = (
    (ErrorCategory.RATE_LIMIT_ERROR, ("rate limit", "429", "too many requests")),
    (ErrorCategory.TIMEOUT_ERROR, ("timeout", "timed out")),
    (ErrorCategory.AUTHENTICATION_ERROR, ("unauthorized", "401", "403", "forbidden")),
    (
        ErrorCategory.NETWORK_ERROR,
        ("network", "connection", "connect", "fetch", "dns", "refused", "reset"),
    ),
    (ErrorCategory.VALIDATION_ERROR, ("validation", "invalid")),
    (ErrorCategory.API_FAILURE, ("api", "500", "502", "503", "504")),
    (ErrorCategory.DATA_QUALITY, ("data", "parse", "format")),
)

SEVERITY_BY_CATEGORY: dict[ErrorCategory, ErrorSeverity] = {
    ErrorCategory.AUTHENTICATION_ERROR: ErrorSeverity.CRITICAL,
    ErrorCategory.API_FAILURE: ErrorSeverity.CRITICAL,
    ErrorCategory.RATE_LIMIT_ERROR: ErrorSeverity.HIGH,
    ErrorCategory.TIMEOUT_ERROR: ErrorSeverity.HIGH,
    ErrorCategory.NETWORK_ERROR: ErrorSeverity.MEDIUM,
    ErrorCategory.PROCESSING_ERROR: ErrorSeverity.MEDIUM,
    ErrorCategory.DATA_QUALITY: ErrorSeverity.LOW,
    ErrorCategory.VALIDATION_ERROR: ErrorSeverity.LOW,
}

_STRATEGY_BY_CATEGORY: dict[ErrorCategory, FallbackStrategy] = {
    ErrorCategory.RATE_LIMIT_ERROR: FallbackStrategy.RETRY_WITH_BACKOFF,
    ErrorCategory.TIMEOUT_ERROR: FallbackStrategy.RETRY_WITH_BACKOFF,
    ErrorCategory.NETWORK_ERROR: FallbackStrategy.RETRY_WITH_BACKOFF,
    ErrorCategory.API_FAILURE: FallbackStrategy.RETRY_WITH_BACKOFF,
    ErrorCategory.DATA_QUALITY: FallbackStrategy.PROFESSIONAL_RESPONSE,
    ErrorCategory.PROCESSING_ERROR: FallbackStrategy.PROFESSIONAL_RESPONSE,
    ErrorCategory.AUTHENTICATION_ERROR: FallbackStrategy.MANUAL_REVIEW,
    ErrorCategory.VALIDATION_ERROR: FallbackStrategy.MANUAL_REVIEW,
}

# API failures stop asking for retries once this many have been spent
_API_FAILURE_RETRY_LIMIT = 2

_USER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.RATE_LIMIT_ERROR: (
        "Research processing for {subject} is temporarily delayed due to high system demand. "
        "The analysis will continue automatically."
    ),
    ErrorCategory.TIMEOUT_ERROR: (
        "Comprehensive {job} analysis for {subject} is taking longer than expected due to the "
        "extensive scope of research. Processing continues in the background."
    ),
    ErrorCategory.API_FAILURE: (
        "External research services are temporarily unavailable. Professional analysis "
        "framework has been applied for {subject} using available data sources."
    ),
    ErrorCategory.DATA_QUALITY: (
        "Limited public information is available for {subject}. This may indicate a private "
        "company with minimal public exposure or recent incorporation."
    ),
    ErrorCategory.NETWORK_ERROR: (
        "Network connectivity issues are affecting research services. The system will "
        "automatically retry the analysis for {subject}."
    ),
    ErrorCategory.AUTHENTICATION_ERROR: (
        "Research service authentication requires attention. Please contact system administrator "
        "to ensure continued access to comprehensive analysis capabilities."
    ),
    ErrorCategory.VALIDATION_ERROR: (
        "The {job} request for {subject} could not be processed as submitted. "
        "Please review the request details and try again."
    ),
    ErrorCategory.PROCESSING_ERROR: (
        "Professional {job} analysis framework has been applied for {subject}. Enhanced research "
        "capabilities may require system configuration updates."
    ),
}

_DEFAULT_ACTIONS = (
    "Review system logs for detailed error information",
    "Contact technical support if issue persists",
    "Consider manual review of research results",
)

_SUGGESTED_ACTIONS: dict[ErrorCategory, tuple[str, ...]] = {
    ErrorCategory.RATE_LIMIT_ERROR: (
        "Wait for automatic retry with exponential backoff",
        "Consider upgrading API tier for higher rate limits",
        "Review research scope to optimize API usage",
    ),
    ErrorCategory.TIMEOUT_ERROR: (
        "Allow additional time for comprehensive research completion",
        "Consider reducing research scope for faster processing",
        "Check system resources and network connectivity",
    ),
    ErrorCategory.API_FAILURE: (
        "Verify API service status and connectivity",
        "Check API key configuration and permissions",
        "Review API endpoint configuration",
        "Consider alternative research methods",
    ),
    ErrorCategory.DATA_QUALITY: (
        "Verify company information accuracy",
        "Consider manual data entry for missing information",
        "Cross-reference with alternative data sources",
        "Review data validation rules",
    ),
    ErrorCategory.AUTHENTICATION_ERROR: (
        "Verify API key configuration",
        "Check service account permissions",
        "Contact system administrator",
        "Review authentication logs",
    ),
    ErrorCategory.NETWORK_ERROR: _DEFAULT_ACTIONS,
    ErrorCategory.VALIDATION_ERROR: _DEFAULT_ACTIONS,
    ErrorCategory.PROCESSING_ERROR: _DEFAULT_ACTIONS,
}


def _error_message(error: ErrorInput) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def _match_text(error: ErrorInput) -> str:
    """Text searched by the rules: the message plus the exception class name."""
    message = _error_message(error)
    if isinstance(error, BaseException):
        message = f"{message} {type(error).__name__}"
    return message.lower()


def determine_category(error: ErrorInput) -> ErrorCategory:
    """First category in CATEGORY_RULES whose terms occur in the error text."""
    text = _match_text(error)
    for category, terms in CATEGORY_RULES:
        if any(term in text for term in terms):
            return category
    return ErrorCategory.PROCESSING_ERROR


def determine_severity(category: ErrorCategory) -> ErrorSeverity:
    return SEVERITY_BY_CATEGORY[category]


def determine_fallback_strategy(category: ErrorCategory, context: ErrorContext) -> FallbackStrategy:
    """Pick a recovery strategy from the category and retries already spent."""
    if category == ErrorCategory.API_FAILURE and context.retry_count > _API_FAILURE_RETRY_LIMIT:
        return FallbackStrategy.PROFESSIONAL_RESPONSE
    return _STRATEGY_BY_CATEGORY[category]


def is_recoverable(category: ErrorCategory) -> bool:
    return category != ErrorCategory.AUTHENTICATION_ERROR


def render_user_message(category: ErrorCategory, context: ErrorContext) -> str:
    return _USER_MESSAGES[category].format(subject=context.subject, job=context.job_label)


def suggested_actions(category: ErrorCategory) -> tuple[str, ...]:
    return _SUGGESTED_ACTIONS[category]


def _technical_details(error: ErrorInput, context: ErrorContext) -> dict[str, Any]:
    stack_trace: Optional[str] = None
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        stack_trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return {
        "error_type": type(error).__name__ if isinstance(error, BaseException) else "Unknown",
        "message": redact_sensitive_data(_error_message(error)),
        "stack_trace": redact_sensitive_data(stack_trace) if stack_trace else None,
        "context": context.to_dict(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def classify_error(error: ErrorInput, context: Optional[ErrorContext] = None) -> EnhancedError:
    """Classify a failure into an EnhancedError. Pure apart from the timestamp.

    Args:
        error: The exception raised, or a plain error message.
        context: Job and call identifiers (default: empty context).
    """
    context = context or ErrorContext()
    category = determine_category(error)
    return EnhancedError(
        category=category,
        severity=determine_severity(category),
        message=_error_message(error),
        context=context,
        fallback_strategy=determine_fallback_strategy(category, context),
        recoverable=is_recoverable(category),
        user_message=render_user_message(category, context),
        suggested_actions=suggested_actions(category),
        original_error=error if isinstance(error, BaseException) else None,
        technical_details=_technical_details(error, context),
    )


def is_retryable_error(error: ErrorInput, retry_config: RetryConfig = DEFAULT_RETRY_CONFIG) -> bool:
    """Whether the message or class name contains a retryable substring."""
    text = _match_text(error)
    return any(pattern.lower() in text for pattern in retry_config.retryable_errors)


def handle_error(error: ErrorInput, context: Optional[ErrorContext] = None) -> EnhancedError:
    """Classify a failure and emit its structured failure record."""
    enhanced = classify_error(error, context)
    get_audit_logger().invocation_failure(
        enhanced.context.api_endpoint,
        enhanced.category.value,
        enhanced.severity.value,
        message=enhanced.technical_details["message"],
        error_type=enhanced.technical_details["error_type"],
        fallback_strategy=enhanced.fallback_strategy.value,
        retry_count=enhanced.context.retry_count,
        job_id=enhanced.context.job_id,
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Classified failure for %s as %s/%s: %s",
            enhanced.context.api_endpoint or "unknown endpoint",
            enhanced.category.value,
            enhanced.severity.value,
            redact_for_logging(dict(enhanced.technical_details)),
        )
    return enhanced

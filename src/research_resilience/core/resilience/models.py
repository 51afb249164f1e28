"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- Taxonomy enums (ErrorCategory, ErrorSeverity, FallbackStrategy)
- CircuitState and CircuitBreakerMetrics for breaker bookkeeping
- ErrorContext / EnhancedError carried through classification
- ApiResult, the sole return contract of the invoker
- ProfessionalResponse, the validated fallback payload
- ResponseLike and SleepFunc protocols for injection
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Mapping, Optional, Protocol, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, requests blocked
    HALF_OPEN = "half_open"  # Probing whether the service recovered


class ErrorCategory(str, Enum):
    """Failure taxonomy for external calls."""

    API_FAILURE = "api_failure"
    DATA_QUALITY = "data_quality"
    PROCESSING_ERROR = "processing_error"
    VALIDATION_ERROR = "validation_error"
    NETWORK_ERROR = "network_error"
    AUTHENTICATION_ERROR = "authentication_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    TIMEOUT_ERROR = "timeout_error"


class ErrorSeverity(str, Enum):
    """Severity levels attached to a classified failure."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class FallbackStrategy(str, Enum):
    """Recovery strategies selected by the classifier."""

    RETRY_WITH_BACKOFF = "retry_with_backoff"
    REDUCE_SCOPE = "reduce_scope"
    USE_CACHED_DATA = "use_cached_data"
    PROFESSIONAL_RESPONSE = "professional_response"
    ALTERNATIVE_API = "alternative_api"
    MANUAL_REVIEW = "manual_review"


class VerificationLevel(str, Enum):
    """How well a fallback answer has been verified."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ErrorContext:
    """Job and call identifiers carried along one invocation.

    Immutable; use ``evolve`` to derive an enriched copy.
    """

    job_id: Optional[str] = None
    job_type: Optional[str] = None
    iteration: Optional[int] = None
    company_name: Optional[str] = None
    user_id: Optional[str] = None
    request_id: Optional[str] = None
    api_endpoint: Optional[str] = None
    retry_count: int = 0
    timestamp: str = field(default_factory=_utc_now)

    def evolve(self, **changes: Any) -> "ErrorContext":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @property
    def subject(self) -> str:
        """Subject name for user-facing templates."""
        return self.company_name or "the company"

    @property
    def job_label(self) -> str:
        """Human-readable job type, e.g. 'due_diligence' -> 'due diligence'."""
        return self.job_type.replace("_", " ") if self.job_type else "research"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EnhancedError:
    """Structured classification of one failed invocation."""

    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    context: ErrorContext
    fallback_strategy: FallbackStrategy
    recoverable: bool
    user_message: str
    suggested_actions: tuple[str, ...] = ()
    original_error: Optional[BaseException] = field(default=None, compare=False)
    technical_details: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def with_strategy(self, strategy: FallbackStrategy) -> "EnhancedError":
        """Return a copy with a different fallback strategy."""
        return replace(self, fallback_strategy=strategy)

    def to_dict(self) -> dict[str, Any]:
        """User-safe view; omits the original exception and technical details."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "fallback_strategy": self.fallback_strategy.value,
            "recoverable": self.recoverable,
            "user_message": self.user_message,
            "suggested_actions": list(self.suggested_actions),
            "context": self.context.to_dict(),
        }


@dataclass
class CircuitBreakerMetrics:
    """Per-endpoint breaker bookkeeping. Times are epoch seconds (0 = never)."""

    failure_count: int = 0
    success_count: int = 0
    last_failure_time: float = 0.0
    last_success_time: float = 0.0
    state: CircuitState = CircuitState.CLOSED
    next_attempt_time: float = 0.0


@dataclass
class ApiResult(Generic[T]):
    """Outcome of one resilient invocation."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    headers: dict[str, str] = field(default_factory=dict)
    retry_count: int = 0
    fallback_used: bool = False
    circuit_breaker_triggered: bool = False
    error_details: Optional[EnhancedError] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "data": self.data,
            "retry_count": self.retry_count,
            "fallback_used": self.fallback_used,
            "circuit_breaker_triggered": self.circuit_breaker_triggered,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.headers:
            result["headers"] = dict(self.headers)
        if self.error_details is not None:
            result["error_details"] = self.error_details.to_dict()
        return result


class ProfessionalResponse(BaseModel):
    """Synthetic, professionally-worded answer with quality metadata."""

    success: bool = True
    content: str
    confidence_score: float = Field(ge=0.0, le=1.0, description="Confidence in the answer")
    data_completeness: int = Field(ge=0, le=100, description="Share of expected data present")
    verification_level: VerificationLevel = VerificationLevel.MEDIUM
    limitations: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    fallback_applied: bool = True
    error_handled: bool = True


class DataQualityMetrics(BaseModel):
    """Quality scores for a research payload, each 0-100."""

    completeness: float = Field(ge=0, le=100)
    accuracy: float = Field(ge=0, le=100)
    consistency: float = Field(ge=0, le=100)
    timeliness: float = Field(ge=0, le=100)
    reliability: float = Field(ge=0, le=100)
    overall_score: float = Field(ge=0, le=100)


class ValidationResult(BaseModel):
    """Outcome of data-quality validation."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    data_quality: DataQualityMetrics
    confidence: float = Field(ge=0.0, le=1.0)
    recommendations: list[str] = Field(default_factory=list)


class ResponseLike(Protocol):
    """What the invoker needs from a response; httpx.Response satisfies it."""

    @property
    def status_code(self) -> int: ...

    @property
    def headers(self) -> Mapping[str, str]: ...

    @property
    def text(self) -> str: ...

    def json(self) -> Any: ...


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...

"""Centralized error classes for the resilient call layer."""

from research_resilience.core.errors.api import HttpStatusError, ResponseParseError
from research_resilience.core.errors.resilience import (
    InvocationCancelledError,
    RequestTimeoutError,
    TimeBudgetExceededError,
)

__all__ = [
    "HttpStatusError",
    "ResponseParseError",
    "InvocationCancelledError",
    "RequestTimeoutError",
    "TimeBudgetExceededError",
]

"""Resilience error classes.

Raised inside the invocation loop and carried into classification; only
InvocationCancelledError is raised to callers of ``invoke``.
"""

from typing import Optional


class RequestTimeoutError(Exception):
    """A single attempt exceeded the endpoint timeout.

    Attributes:
        timeout_seconds: The timeout duration that was exceeded.
        operation: Name of the endpoint that timed out.
    """

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.timeout_seconds = timeout_seconds
        self.operation = operation


class TimeBudgetExceededError(Exception):
    """Time budget for the whole invocation has been exhausted.

    Attributes:
        budget_seconds: The original time budget.
        elapsed_seconds: Time elapsed before budget exceeded.
        operation: Name of the endpoint.
    """

    def __init__(
        self,
        message: str,
        budget_seconds: Optional[float] = None,
        elapsed_seconds: Optional[float] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.budget_seconds = budget_seconds
        self.elapsed_seconds = elapsed_seconds
        self.operation = operation


class InvocationCancelledError(Exception):
    """The caller cancelled an in-progress invocation.

    Attributes:
        endpoint: Name of the endpoint being called.
        attempts: Network attempts started before cancellation.
    """

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.attempts = attempts

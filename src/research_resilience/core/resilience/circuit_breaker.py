"""Per-endpoint circuit breaker.

State machine:
    CLOSED    -> OPEN       once failure_count reaches the threshold
    OPEN      -> HALF_OPEN  on the first is_open() check after the cooldown
    HALF_OPEN -> CLOSED     on a successful probe (failure_count reset to 0)
    HALF_OPEN -> OPEN       on a failed probe (cooldown re-armed)
    HALF_OPEN (released)    on an answer with no outage signal; next check re-probes

There is no background timer; the OPEN -> HALF_OPEN flip happens lazily
inside ``is_open``. Each breaker owns its own lock, so endpoints never
contend with each other.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Optional

from research_resilience.core.observability import get_audit_logger
from research_resilience.core.resilience.models import CircuitBreakerMetrics, CircuitState

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Circuit breaker for one external endpoint.

    Args:
        name: Endpoint name, used in logs and audit records.
        failure_threshold: Failures that open the breaker.
        recovery_timeout: Cooldown in seconds before a probe is allowed.
        clock: Wall-clock source (epoch seconds); injectable for tests.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be >= 1, got {failure_threshold}")
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._metrics = CircuitBreakerMetrics()
        # Start time of the outstanding half-open probe, if any
        self._probe_started_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        return self._metrics.state

    @property
    def failure_count(self) -> int:
        return self._metrics.failure_count

    @property
    def success_count(self) -> int:
        return self._metrics.success_count

    def is_open(self) -> bool:
        """Check whether calls must be rejected.

        Side effect: after the cooldown, the first check moves OPEN to
        HALF_OPEN and lets exactly one probe through (returns False). Later
        checks return True while that probe is outstanding. A probe that
        reports no outcome within another cooldown is considered lost and
        a new one is handed out.
        """
        with self._lock:
            now = self._clock()
            state = self._metrics.state

            if state == CircuitState.CLOSED:
                return False

            if state == CircuitState.OPEN:
                if now < self._metrics.next_attempt_time:
                    return True
                self._transition(CircuitState.HALF_OPEN, reason="cooldown_elapsed")
                self._probe_started_at = now
                return False

            # HALF_OPEN
            if self._probe_started_at is None or now - self._probe_started_at >= self.recovery_timeout:
                self._probe_started_at = now
                return False
            return True

    def record_success(self) -> None:
        """Record a successful call; closes the breaker from HALF_OPEN."""
        with self._lock:
            self._metrics.success_count += 1
            self._metrics.last_success_time = self._clock()

            if self._metrics.state == CircuitState.HALF_OPEN:
                self._metrics.failure_count = 0
                self._probe_started_at = None
                self._transition(CircuitState.CLOSED, reason="probe_succeeded")

    def record_failure(self) -> None:
        """Record a failed call; may open or re-open the breaker."""
        with self._lock:
            now = self._clock()
            self._metrics.failure_count += 1
            self._metrics.last_failure_time = now

            if self._metrics.state == CircuitState.HALF_OPEN:
                self._probe_started_at = None
                self._open(now, reason="probe_failed")
            elif self._metrics.failure_count >= self.failure_threshold:
                self._open(now, reason="threshold_reached")

    def release_probe(self) -> None:
        """Give back a half-open probe whose answer carried no outage signal.

        The breaker stays HALF_OPEN and the next ``is_open`` check hands
        out a new probe. No-op in any other state.
        """
        with self._lock:
            if self._metrics.state == CircuitState.HALF_OPEN:
                self._probe_started_at = None

    def reset(self) -> None:
        """Manually close the breaker (operator override)."""
        with self._lock:
            self._metrics.failure_count = 0
            self._metrics.next_attempt_time = 0.0
            self._probe_started_at = None
            if self._metrics.state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED, reason="manual_reset")
        logger.info("Circuit breaker for %s manually reset", self.name)

    def metrics(self) -> CircuitBreakerMetrics:
        """Snapshot of the current metrics."""
        with self._lock:
            return replace(self._metrics)

    def status(self) -> dict[str, Any]:
        """Observability view of the breaker."""
        snapshot = self.metrics()
        return {
            "state": snapshot.state.value,
            "failure_count": snapshot.failure_count,
            "success_count": snapshot.success_count,
            "last_failure_time": snapshot.last_failure_time,
            "last_success_time": snapshot.last_success_time,
            "next_attempt_time": snapshot.next_attempt_time,
            "is_healthy": snapshot.state == CircuitState.CLOSED,
        }

    # Callers must hold self._lock for the helpers below.

    def _open(self, now: float, *, reason: str) -> None:
        self._metrics.next_attempt_time = now + self.recovery_timeout
        if self._metrics.state != CircuitState.OPEN:
            self._transition(CircuitState.OPEN, reason=reason)
            logger.warning(
                "Circuit breaker for %s opened after %d failures",
                self.name,
                self._metrics.failure_count,
            )

    def _transition(self, new_state: CircuitState, *, reason: str) -> None:
        old_state = self._metrics.state
        self._metrics.state = new_state
        get_audit_logger().circuit_state_change(
            self.name,
            old_state.value,
            new_state.value,
            reason=reason,
            failure_count=self._metrics.failure_count,
        )

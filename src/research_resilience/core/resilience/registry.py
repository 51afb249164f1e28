"""ResilienceRegistry: owner of per-endpoint breaker and rate-limit state.

Constructed explicitly and injected into the invoker so tests (and
independent subsystems) get isolated state. A process-wide default exists
for callers that do not care.
"""

import threading
import time
from typing import Any, Callable, Mapping, Optional

from research_resilience.config.endpoints import (
    ENDPOINT_CONFIGS,
    EndpointConfig,
    get_endpoint_config,
    normalize_endpoint_name,
)
from research_resilience.config.settings import ResilienceSettings
from research_resilience.core.resilience.circuit_breaker import CircuitBreaker
from research_resilience.core.resilience.models import CircuitState
from research_resilience.core.resilience.rate_limiter import RateLimiter


class ResilienceRegistry:
    """Per-endpoint circuit breakers and rate limiting.

    Breakers are created lazily on first use from the endpoint's threshold
    and cooldown. The registry lock only guards creation; every breaker
    and rate-limit window carries its own lock.

    Args:
        endpoint_configs: Endpoint table (defaults to ENDPOINT_CONFIGS).
        rate_limiter: Shared admission control (default RateLimiter()).
        clock: Wall-clock source handed to new breakers.
    """

    def __init__(
        self,
        endpoint_configs: Optional[Mapping[str, EndpointConfig]] = None,
        *,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._endpoint_configs = dict(ENDPOINT_CONFIGS if endpoint_configs is None else endpoint_configs)
        self._rate_limiter = rate_limiter or RateLimiter()
        self._clock = clock
        self._circuit_breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: ResilienceSettings, **kwargs: Any) -> "ResilienceRegistry":
        """Build a registry from loaded settings."""
        rate_limiter = kwargs.pop("rate_limiter", None) or RateLimiter(
            ceiling=settings.rate_limit_ceiling,
            window=settings.rate_limit_window,
            delay=settings.rate_limit_delay,
        )
        return cls(settings.endpoints, rate_limiter=rate_limiter, **kwargs)

    @property
    def endpoint_configs(self) -> dict[str, EndpointConfig]:
        return dict(self._endpoint_configs)

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def get_endpoint_config(self, name: str) -> EndpointConfig:
        """Configured endpoint, or a default config for unknown names."""
        return get_endpoint_config(name, self._endpoint_configs)

    def circuit_breaker(self, name: str) -> CircuitBreaker:
        """Get or lazily create the breaker for an endpoint."""
        key = normalize_endpoint_name(name)
        breaker = self._circuit_breakers.get(key)
        if breaker is None:
            with self._lock:
                breaker = self._circuit_breakers.get(key)
                if breaker is None:
                    config = self.get_endpoint_config(key)
                    breaker = CircuitBreaker(
                        name=key,
                        failure_threshold=config.circuit_breaker_threshold,
                        recovery_timeout=config.health_check_interval,
                        clock=self._clock,
                    )
                    self._circuit_breakers[key] = breaker
        return breaker

    def is_open(self, name: str) -> bool:
        """True when the endpoint's breaker rejects calls (may flip OPEN to HALF_OPEN)."""
        return self.circuit_breaker(name).is_open()

    def record_success(self, name: str) -> None:
        self.circuit_breaker(name).record_success()

    def record_failure(self, name: str) -> None:
        self.circuit_breaker(name).record_failure()

    def release_probe(self, name: str) -> None:
        self.circuit_breaker(name).release_probe()

    def breaker_state(self, name: str) -> CircuitState:
        return self.circuit_breaker(name).state

    async def admit(self, name: str) -> float:
        """Apply local admission control for an endpoint."""
        return await self._rate_limiter.admit(normalize_endpoint_name(name))

    def get_circuit_breaker_status(self) -> dict[str, dict[str, Any]]:
        """Status for every breaker created so far, keyed by endpoint name."""
        with self._lock:
            breakers = dict(self._circuit_breakers)
        return {name: breaker.status() for name, breaker in breakers.items()}

    def reset_circuit_breaker(self, name: str) -> None:
        """Operator override: close an endpoint's breaker."""
        self.circuit_breaker(name).reset()

    def reset(self) -> None:
        """Drop all breaker and rate-limit state."""
        with self._lock:
            self._circuit_breakers.clear()
        self._rate_limiter.reset()


# Module-level default
_default_registry: Optional[ResilienceRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> ResilienceRegistry:
    """Get the process-wide registry.

    Thread-safe via double-checked locking.
    """
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = ResilienceRegistry()
    return _default_registry


def reset_default_registry_for_testing() -> None:
    """Replace the process-wide registry with a fresh one."""
    global _default_registry
    with _default_registry_lock:
        _default_registry = ResilienceRegistry()

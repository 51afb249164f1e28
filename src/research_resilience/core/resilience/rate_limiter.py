"""Local, coarse admission control per endpoint.

Smooths bursts only. Exact provider quotas are enforced by the providers'
own 429 responses, which the invoker handles via ``Retry-After``.
"""

import asyncio
import logging
import threading
import time
from collections import deque
from typing import Callable, Optional

from research_resilience.core.observability import audit_log
from research_resilience.core.resilience.models import SleepFunc

logger = logging.getLogger(__name__)


class _AdmissionWindow:
    """Recent admission timestamps for one endpoint."""

    __slots__ = ("lock", "admitted")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.admitted: deque[float] = deque()

    def prune(self, cutoff: float) -> None:
        while self.admitted and self.admitted[0] <= cutoff:
            self.admitted.popleft()


class RateLimiter:
    """Sliding-window request counter with a short fixed delay over the ceiling.

    Every admission is counted for ``window`` seconds regardless of the
    call's outcome. When the count within the window exceeds ``ceiling``,
    ``admit`` sleeps ``delay`` seconds before letting the call proceed.

    Args:
        ceiling: Recent requests allowed before delays kick in.
        window: Seconds an admission stays counted.
        delay: Seconds to sleep when over the ceiling.
        clock: Monotonic clock; injectable for tests.
        sleep_func: Injectable async sleep for tests.
    """

    def __init__(
        self,
        ceiling: int = 10,
        window: float = 1.0,
        delay: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep_func: Optional[SleepFunc] = None,
    ) -> None:
        self.ceiling = ceiling
        self.window = window
        self.delay = delay
        self._clock = clock
        self._sleep = sleep_func or asyncio.sleep
        self._windows: dict[str, _AdmissionWindow] = {}
        self._windows_lock = threading.Lock()

    def _window_for(self, name: str) -> _AdmissionWindow:
        window = self._windows.get(name)
        if window is None:
            with self._windows_lock:
                window = self._windows.setdefault(name, _AdmissionWindow())
        return window

    async def admit(self, name: str) -> float:
        """Admit one request for ``name``, sleeping briefly if over the ceiling.

        Returns:
            The delay applied in seconds (0.0 when admitted immediately).
        """
        window = self._window_for(name)
        with window.lock:
            now = self._clock()
            window.prune(now - self.window)
            window.admitted.append(now)
            recent = len(window.admitted)

        if recent <= self.ceiling:
            return 0.0

        audit_log(
            "rate_limit_wait",
            endpoint=name,
            wait_ms=int(self.delay * 1000),
            recent_requests=recent,
            ceiling=self.ceiling,
        )
        logger.debug("%s over local ceiling (%d/%d), delaying %.3fs", name, recent, self.ceiling, self.delay)
        await self._sleep(self.delay)
        return self.delay

    def recent_count(self, name: str) -> int:
        """Admissions for ``name`` still inside the window."""
        window = self._window_for(name)
        with window.lock:
            window.prune(self._clock() - self.window)
            return len(window.admitted)

    def reset(self, name: Optional[str] = None) -> None:
        """Forget admissions for one endpoint, or for all of them."""
        with self._windows_lock:
            if name is None:
                self._windows.clear()
            else:
                self._windows.pop(name, None)

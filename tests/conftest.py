"""Shared fixtures: controllable time, recorded sleeps and scripted requests."""

import random
from typing import Any, Sequence, Union

import httpx
import pytest

from research_resilience.core.resilience import (
    RateLimiter,
    ResilienceRegistry,
    ResilientInvoker,
    reset_default_registry_for_testing,
)


class FakeClock:
    """Manually advanced clock usable as both wall and monotonic source."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async sleep replacement that records delays and advances a clock."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds)


class ScriptedRequest:
    """Zero-argument request function replaying responses or raising errors.

    The last item repeats once the script runs out.
    """

    def __init__(self, *script: Union[httpx.Response, BaseException]) -> None:
        self.script: Sequence[Union[httpx.Response, BaseException]] = script
        self.calls = 0

    async def __call__(self) -> Any:
        item = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture(autouse=True)
def _isolated_default_registry():
    """Give every test a fresh process-wide registry."""
    reset_default_registry_for_testing()
    yield
    reset_default_registry_for_testing()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps(clock):
    return SleepRecorder(clock)


@pytest.fixture
def registry(clock, sleeps):
    """Registry with the built-in endpoints and controllable time."""
    return ResilienceRegistry(
        rate_limiter=RateLimiter(clock=clock, sleep_func=sleeps),
        clock=clock,
    )


@pytest.fixture
def invoker(registry, sleeps, clock):
    return ResilientInvoker(registry, sleep_func=sleeps, rng=random.Random(42), clock=clock)


@pytest.fixture
def scripted():
    """Factory for ScriptedRequest instances."""
    return ScriptedRequest

"""Retry delay computation and rate-limit header parsing."""

import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable, Optional

from research_resilience.config.endpoints import RetryConfig
from research_resilience.core.resilience.models import ResponseLike

_JITTER_FRACTION = 0.1
_RATE_LIMIT_HEADERS = ("retry-after", "x-ratelimit-remaining", "x-ratelimit-reset")


def compute_backoff_delay(
    attempt: int,
    config: RetryConfig,
    *,
    jitter: bool = True,
    rng: Optional[random.Random] = None,
) -> float:
    """Delay in seconds before the retry that follows ``attempt``.

    ``base_delay * backoff_multiplier ** (attempt - 1)`` plus up to 10%
    jitter, capped at ``max_delay``.

    Args:
        attempt: The 1-based attempt that just failed.
        config: Retry policy for the call.
        jitter: Add 0-10% randomness to spread synchronized retries.
        rng: Injectable Random instance for deterministic testing.

    Raises:
        ValueError: If attempt is below 1.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    raw = config.base_delay * (config.backoff_multiplier ** (attempt - 1))
    if jitter:
        raw += (rng or random).random() * _JITTER_FRACTION * raw
    return min(raw, config.max_delay)


def parse_retry_after(
    response: ResponseLike,
    *,
    now: Optional[Callable[[], datetime]] = None,
) -> Optional[float]:
    """Parse the ``Retry-After`` header from a response.

    Handles delay-seconds and RFC 7231 HTTP-date values.

    Returns:
        Seconds to wait before retrying, or ``None`` if the header is
        missing or unparseable.
    """
    retry_after = response.headers.get("retry-after") or response.headers.get("Retry-After")
    if not retry_after:
        return None

    value = retry_after.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    current = now() if now is not None else datetime.now(timezone.utc)
    return max(0.0, (when - current).total_seconds())


def extract_rate_limit_headers(response: ResponseLike) -> dict[str, str]:
    """Copy the rate-limit related headers worth returning to callers."""
    headers: dict[str, str] = {}
    for name in _RATE_LIMIT_HEADERS:
        value = response.headers.get(name)
        if value:
            headers[name] = value
    return headers

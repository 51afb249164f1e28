"""Parsing helpers for configuration values.

Provides boolean and numeric parsing used by the settings loader for both
TOML and environment inputs.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def _parse_float(value: Any, *, setting: str, minimum: float = 0.0) -> Optional[float]:
    """Parse a non-negative float, warning and returning None on bad input."""
    if isinstance(value, bool):
        logger.warning("Invalid value for %s: %r (expected a number)", setting, value)
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s: %r (expected a number)", setting, value)
        return None
    if parsed < minimum:
        logger.warning("Invalid value for %s: %r (must be >= %s)", setting, value, minimum)
        return None
    return parsed


def _parse_int(value: Any, *, setting: str, minimum: int = 0) -> Optional[int]:
    """Parse an integer with a lower bound, warning and returning None on bad input."""
    if isinstance(value, bool):
        logger.warning("Invalid value for %s: %r (expected an integer)", setting, value)
        return None
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Invalid value for %s: %r (expected an integer)", setting, value)
        return None
    if parsed < minimum:
        logger.warning("Invalid value for %s: %r (must be >= %s)", setting, value, minimum)
        return None
    return parsed

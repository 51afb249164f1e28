"""Credential redaction for log records and error details.

Upstream error bodies and exception messages can echo request headers or
keys back. Everything that leaves the call layer through a log record or
``technical_details`` passes through here first.
"""

import json
import re
from typing import Any, Final, List, Optional, Tuple

SENSITIVE_PATTERNS: Final[List[Tuple[str, str]]] = [
    # Provider API keys
    (r"sk-ant-[a-zA-Z0-9_\-]{16,}", "ANTHROPIC_KEY"),
    (r"jina_[a-zA-Z0-9]{20,}", "JINA_KEY"),
    (r"\bsk-[a-zA-Z0-9_\-]{20,}", "API_KEY"),
    # Header and query-string style credentials
    (r"(?i)bearer\s+[a-zA-Z0-9_\-\.=]+", "BEARER_TOKEN"),
    (
        r"(?i)(x-api-key|api[_-]?key|apikey)(\"?\s*[:=]\s*['\"]?)([a-zA-Z0-9_\-\.]{8,})",
        "API_KEY",
    ),
    (
        r"(?i)(access[_-]?token|secret[_-]?key)(\"?\s*[:=]\s*['\"]?)([a-zA-Z0-9_\-\.]{8,})",
        "SECRET",
    ),
    # Email addresses (user ids sometimes are)
    (r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", "EMAIL"),
]
"""Patterns for detecting credentials that must never reach a log.

Each tuple contains a regex and the label used in the redaction marker.
"""

_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset(
    {
        "api_key",
        "apikey",
        "x_api_key",
        "authorization",
        "auth",
        "token",
        "access_token",
        "secret",
        "secret_key",
        "password",
        "credentials",
    }
)


def redact_sensitive_data(
    data: Any,
    *,
    patterns: Optional[List[Tuple[str, str]]] = None,
    redaction_format: str = "[REDACTED:{label}]",
    max_depth: int = 10,
) -> Any:
    """Recursively redact credentials from strings, dicts, and lists.

    Args:
        data: The data to redact (string, dict, list, or nested structure)
        patterns: Custom patterns to use (default: SENSITIVE_PATTERNS)
        redaction_format: Format string for redaction markers (uses {label})
        max_depth: Maximum recursion depth

    Returns:
        A copy of the data with sensitive values redacted

    Example:
        >>> redact_sensitive_data("401 for x-api-key: sk-ant-REDACTED")
        '401 for x-api-key: [REDACTED:ANTHROPIC_KEY]'
    """
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    check_patterns = patterns if patterns is not None else SENSITIVE_PATTERNS

    if isinstance(data, str):
        result = data
        for pattern, label in check_patterns:
            marker = redaction_format.format(label=label)
            compiled = re.compile(pattern)
            if compiled.groups >= 3:
                # Keep the key name and separator, replace only the value
                result = compiled.sub(lambda m, mk=marker: f"{m.group(1)}{m.group(2)}{mk}", result)
            else:
                result = compiled.sub(marker, result)
        return result

    if isinstance(data, dict):
        redacted = {}
        for key, value in data.items():
            key_lower = str(key).lower().replace("-", "_")
            if key_lower in _SENSITIVE_KEYS:
                redacted[key] = f"[REDACTED:{key_lower.upper()}]"
            else:
                redacted[key] = redact_sensitive_data(
                    value,
                    patterns=check_patterns,
                    redaction_format=redaction_format,
                    max_depth=max_depth - 1,
                )
        return redacted

    if isinstance(data, (list, tuple)):
        items = [
            redact_sensitive_data(
                item,
                patterns=check_patterns,
                redaction_format=redaction_format,
                max_depth=max_depth - 1,
            )
            for item in data
        ]
        return tuple(items) if isinstance(data, tuple) else items

    return data


def redact_for_logging(data: Any) -> str:
    """Redact and serialize data for a log line."""
    redacted = redact_sensitive_data(data)
    try:
        return json.dumps(redacted, default=str)
    except (TypeError, ValueError):
        return str(redacted)

"""Audit logging for resilience events.

Provides structured audit records for breaker transitions, retries,
rate-limit waits, fallbacks and health probes, with the correlation id
filled in from the request context.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from research_resilience.core.context import get_correlation_id

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events emitted by the call layer."""

    CIRCUIT_STATE_CHANGE = "circuit_state_change"
    CIRCUIT_REJECTED = "circuit_rejected"
    RETRY_ATTEMPT = "retry_attempt"
    RATE_LIMIT_WAIT = "rate_limit_wait"
    FALLBACK_APPLIED = "fallback_applied"
    INVOCATION_FAILURE = "invocation_failure"
    HEALTH_CHECK = "health_check"


@dataclass
class AuditEvent:
    """Structured audit event."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Auto-populate correlation_id from context if not set."""
        if self.correlation_id is None:
            self.correlation_id = get_correlation_id() or None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        return result


class AuditLogger:
    """
    Structured audit logging for resilience events.

    Audit records go to a separate child logger so monitoring sinks can
    subscribe to them without the rest of the package's debug output.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger(f"{__name__}.audit")

    def log(self, event: AuditEvent, level: int = logging.INFO) -> None:
        """Log an audit event."""
        self._logger.log(level, f"AUDIT: {event.event_type.value}", extra={"audit": event.to_dict()})

    def circuit_state_change(self, endpoint: str, old_state: str, new_state: str, **details: Any) -> None:
        """Log a breaker transition; openings are warnings."""
        level = logging.WARNING if new_state == "open" else logging.INFO
        self.log(
            AuditEvent(
                event_type=AuditEventType.CIRCUIT_STATE_CHANGE,
                details={"endpoint": endpoint, "old_state": old_state, "new_state": new_state, **details},
            ),
            level=level,
        )

    def invocation_failure(self, endpoint: Optional[str], category: str, severity: str, **details: Any) -> None:
        """Log the structured record of a failed invocation."""
        level = logging.ERROR if severity == "critical" else logging.WARNING
        self.log(
            AuditEvent(
                event_type=AuditEventType.INVOCATION_FAILURE,
                details={"endpoint": endpoint, "category": category, "severity": severity, **details},
            ),
            level=level,
        )


# Global audit logger
_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger."""
    return _audit


def audit_log(event_type: str, **details: Any) -> None:
    """
    Convenience function for audit logging.

    Args:
        event_type: Type of event (circuit_state_change, circuit_rejected,
                    retry_attempt, rate_limit_wait, fallback_applied,
                    invocation_failure, health_check)
        **details: Additional details to include in the audit log
    """
    try:
        event_enum = AuditEventType(event_type)
    except ValueError:
        event_enum = AuditEventType.INVOCATION_FAILURE
        details["original_event_type"] = event_type

    _audit.log(AuditEvent(event_type=event_enum, details=details))

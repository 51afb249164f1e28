"""
Observability utilities for the resilient call layer.

Provides audit logging for breaker, retry and fallback events, and
credential redaction for anything written to a log record.

    from research_resilience.core.observability import audit_log

    audit_log("retry_attempt", endpoint="jina", attempt=2, max_attempts=3)
"""

from research_resilience.core.observability.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    audit_log,
    get_audit_logger,
)
from research_resilience.core.observability.redaction import (
    SENSITIVE_PATTERNS,
    redact_for_logging,
    redact_sensitive_data,
)

__all__ = [
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "audit_log",
    "get_audit_logger",
    # Redaction
    "SENSITIVE_PATTERNS",
    "redact_for_logging",
    "redact_sensitive_data",
]

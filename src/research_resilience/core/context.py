"""Request-scoped correlation context.

Correlation ids ride on ``contextvars`` so concurrent invocations on the
same event loop keep their own ids without any locking.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get the correlation id for the current context ("" when unset)."""
    return _correlation_id.get()


def set_correlation_id(value: str) -> None:
    """Set the correlation id for the current context."""
    _correlation_id.set(value)


@contextmanager
def correlation_scope(value: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the duration of a block.

    Generates a fresh id when none is given and restores the previous id on
    exit.
    """
    token = _correlation_id.set(value or uuid.uuid4().hex)
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)

"""Correlation ids for log records.

A correlation id ties together every log line emitted while handling one
tool call. Ids live in a ContextVar so concurrent asyncio tasks keep their
own value. During server start-up an initialization id is used instead.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_initialization_id: Optional[str] = None


def generate_correlation_id() -> str:
    """Return a new id of the form ``req_<12 hex chars>``."""
    return f"req_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get() or _initialization_id


def set_correlation_id(correlation_id: str):
    """Set the id for the current context. Returns a token for reset."""
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


def set_initialization_correlation_id(correlation_id: str) -> None:
    global _initialization_id
    _initialization_id = correlation_id


def clear_initialization_correlation_id() -> None:
    global _initialization_id
    _initialization_id = None


class CorrelationIdFilter(logging.Filter):
    """Add the current correlation id to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "none"
        return True

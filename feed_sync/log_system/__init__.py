"""Logging helpers: logger factory and correlation ids."""

from .correlation import (
    CorrelationIdFilter,
    generate_correlation_id,
    get_correlation_id,
)
from .unified_logger import UnifiedLogger

__all__ = [
    "CorrelationIdFilter",
    "generate_correlation_id",
    "get_correlation_id",
    "UnifiedLogger",
]

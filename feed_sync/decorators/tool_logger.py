"""Logging decorator for MCP tools.

Each call gets its own correlation id, so every log line emitted while the
tool runs can be traced back to it.
"""

import functools
import time
from typing import Any, Callable, Dict, Optional

from feed_sync.log_system.correlation import (
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from feed_sync.log_system.unified_logger import UnifiedLogger


def tool_logger(func: Callable, config: Optional[Dict[str, Any]] = None) -> Callable:
    """Log start, end and duration of an async tool call."""
    logger = UnifiedLogger.get_logger("feed_sync.tools")
    config = config or {}

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Any:
        token = set_correlation_id(generate_correlation_id())
        started = time.perf_counter()
        params = {k: v for k, v in kwargs.items() if k != "ctx"}
        logger.info(f"Tool {func.__name__} started with {params}")

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.error(f"Tool {func.__name__} raised after {elapsed:.1f}ms: {e}")
            raise
        else:
            elapsed = (time.perf_counter() - started) * 1000
            success = result.get("success") if isinstance(result, dict) else None
            logger.info(f"Tool {func.__name__} finished in {elapsed:.1f}ms (success={success})")
            if config.get("log_level") == "DEBUG":
                logger.debug(f"Tool {func.__name__} result: {result}")
            return result
        finally:
            reset_correlation_id(token)

    return wrapper

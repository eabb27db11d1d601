"""Exception handling decorator for MCP tools.

Domain errors become structured tool responses. Anything else is logged
with its traceback and re-raised so the MCP layer reports it.
"""

import functools
from typing import Any, Callable

from feed_sync.errors import FeedSyncError
from feed_sync.log_system.unified_logger import UnifiedLogger


def exception_handler(func: Callable) -> Callable:
    """Wrap an async tool so FeedSyncError comes back as {"success": False, ...}."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Any:
        logger = UnifiedLogger.get_logger(func.__module__)
        try:
            return await func(*args, **kwargs)
        except FeedSyncError as e:
            logger.warning(f"{func.__name__} failed: {e}")
            return {
                "success": False,
                "error": str(e),
                "error_type": getattr(e.error_type, "value", e.error_type),
            }
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            raise

    return wrapper

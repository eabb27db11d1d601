"""Single entry point for obtaining loggers.

Modules call ``UnifiedLogger.get_logger(__name__)`` rather than touching the
logging module directly, so handler setup stays in one place.
"""

import logging
from typing import Optional

from feed_sync.config import ServerConfig


class UnifiedLogger:
    """Process-wide logger factory."""

    _initialized: bool = False

    @classmethod
    def initialize_default(cls, config: Optional[ServerConfig] = None) -> None:
        """Install the default stream handler at the configured level."""
        from feed_sync.logging_config import setup_logging

        setup_logging(config)
        cls._initialized = True

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Return a logger under the feed_sync hierarchy.

        Module names already start with ``feed_sync``; anything else is
        nested beneath it so it shares the package handlers.
        """
        if name != "feed_sync" and not name.startswith("feed_sync."):
            name = f"feed_sync.{name}"
        return logging.getLogger(name)

    @classmethod
    def close(cls) -> None:
        """Flush and detach the package handlers."""
        root = logging.getLogger("feed_sync")
        for handler in list(root.handlers):
            handler.flush()
            handler.close()
            root.removeHandler(handler)
        cls._initialized = False

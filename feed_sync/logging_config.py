"""Logging setup for feed_sync.

Log lines go to stderr so the STDIO transport keeps stdout for protocol
messages.
"""

import logging
import sys
from typing import Optional

from feed_sync.config import ServerConfig
from feed_sync.log_system.correlation import CorrelationIdFilter

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"

logger = logging.getLogger("feed_sync")


def setup_logging(config: Optional[ServerConfig] = None) -> logging.Logger:
    """Configure the feed_sync logger tree.

    Args:
        config: Server configuration; only log_level is used

    Returns:
        The package root logger
    """
    level_name = config.log_level if config else "INFO"
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    return logger

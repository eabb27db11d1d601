"""Configuration for feed_sync.

Settings come from FEED_SYNC_* environment variables. get_config() caches a
single ServerConfig for the process; tests call load_config() directly.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_USER_AGENT = "FeedSync/1.0 (RSS Feed Reader)"


def _get_db_path() -> Path:
    """Get the database path, respecting FEED_SYNC_DB_PATH env var for testing."""
    env_path = os.environ.get("FEED_SYNC_DB_PATH")
    if env_path:
        return Path(env_path)
    return Path.home() / ".feed_sync" / "feed_sync.db"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass
class ServerConfig:
    """Runtime settings for the server and the sync engine."""

    name: str = "feed_sync"
    log_level: str = "INFO"
    db_path: Path = field(default_factory=_get_db_path)
    fetch_timeout: float = 10.0
    max_retries: int = 3
    retry_delay: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT


def load_config() -> ServerConfig:
    """Build a ServerConfig from the environment."""
    config = ServerConfig(
        name=os.environ.get("FEED_SYNC_SERVER_NAME", "feed_sync"),
        log_level=os.environ.get("FEED_SYNC_LOG_LEVEL", "INFO").upper(),
        db_path=_get_db_path(),
        fetch_timeout=_env_float("FEED_SYNC_FETCH_TIMEOUT", 10.0),
        max_retries=_env_int("FEED_SYNC_MAX_RETRIES", 3),
        retry_delay=_env_float("FEED_SYNC_RETRY_DELAY", 1.0),
        user_agent=os.environ.get("FEED_SYNC_USER_AGENT", DEFAULT_USER_AGENT),
    )

    if config.max_retries < 1:
        raise ValueError("FEED_SYNC_MAX_RETRIES must be at least 1")
    if config.retry_delay < 0:
        raise ValueError("FEED_SYNC_RETRY_DELAY must not be negative")

    return config


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config

    if _config is None:
        _config = load_config()

    return _config

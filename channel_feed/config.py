"""
Channel Feed Configuration

All environment variables MUST be read here. No os.getenv() calls elsewhere.
Nothing is required at import time; the CLI checks for a WebSocket URL
before it connects.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


def _optional_env(name: str, default: str = "") -> str:
    """Get an optional environment variable with a default."""
    return os.environ.get(name, default)


def _optional_env_float(name: str, default: float) -> float:
    """Get an optional float environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Invalid number for {name}: {value}")


@dataclass(frozen=True)
class ConnectionConfig:
    """WebSocket connection configuration."""
    ws_url: str
    ping_interval: float = 20.0
    ping_timeout: float = 10.0
    close_timeout: float = 5.0


@dataclass(frozen=True)
class DispatcherConfig:
    """Event queue configuration."""
    thread_name_prefix: str = "channel-feed-events"
    shutdown_timeout: float = 5.0


@dataclass(frozen=True)
class Settings:
    """Root configuration container."""
    connection: ConnectionConfig
    dispatcher: DispatcherConfig
    log_level: str = "INFO"


def _load_settings() -> Settings:
    """Load all settings from environment variables."""
    connection = ConnectionConfig(
        ws_url=_optional_env("CHANNEL_FEED_WS_URL", ""),
        ping_interval=_optional_env_float("CHANNEL_FEED_PING_INTERVAL", 20.0),
        ping_timeout=_optional_env_float("CHANNEL_FEED_PING_TIMEOUT", 10.0),
        close_timeout=_optional_env_float("CHANNEL_FEED_CLOSE_TIMEOUT", 5.0),
    )

    dispatcher = DispatcherConfig(
        thread_name_prefix=_optional_env("CHANNEL_FEED_THREAD_PREFIX", "channel-feed-events"),
        shutdown_timeout=_optional_env_float("CHANNEL_FEED_SHUTDOWN_TIMEOUT", 5.0),
    )

    return Settings(
        connection=connection,
        dispatcher=dispatcher,
        log_level=_optional_env("CHANNEL_FEED_LOG_LEVEL", "INFO").upper(),
    )


settings = _load_settings()

from __future__ import annotations

import logging
import os
from typing import Any, Dict

from shared.protocol.constants import DEFAULT_CLOCK_SKEW_MS
from shared.settings import ConfigError, coerce_type, load_env_config

DEFAULT_SERVER_CONFIG: Dict[str, Any] = {
    "host": "0.0.0.0",
    "port": 8080,
    "log_level": "INFO",
    "chat_path": "/chat",
    "static_dir": "static",
    "queue_size": 5,
    "outbox_size": 32,
    "clock_skew_ms": DEFAULT_CLOCK_SKEW_MS,
}

SERVER_CONFIG: Dict[str, Any] = DEFAULT_SERVER_CONFIG.copy()


def load_server_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load server configuration from SERVER_* variables and an optional .env file."""
    load_env_config(DEFAULT_SERVER_CONFIG, SERVER_CONFIG, "SERVER", env_path)
    # Hosting platforms hand out the listening port as plain PORT.
    if "SERVER_PORT" not in os.environ and os.getenv("PORT"):
        SERVER_CONFIG["port"] = coerce_type(os.environ["PORT"], int)
    _validate_config()
    logging.getLogger().setLevel(SERVER_CONFIG["log_level"])
    return SERVER_CONFIG


def _validate_config() -> None:
    if not (0 <= SERVER_CONFIG["port"] <= 65535):
        raise ConfigError("port must be between 0 and 65535")
    if SERVER_CONFIG["queue_size"] <= 0:
        raise ConfigError("queue_size must be positive")
    if SERVER_CONFIG["outbox_size"] <= 0:
        raise ConfigError("outbox_size must be positive")
    if SERVER_CONFIG["clock_skew_ms"] < 0:
        raise ConfigError("clock_skew_ms must not be negative")
    if not SERVER_CONFIG["chat_path"].startswith("/"):
        raise ConfigError("chat_path must start with '/'")


__all__ = ["DEFAULT_SERVER_CONFIG", "SERVER_CONFIG", "ConfigError", "load_server_config"]

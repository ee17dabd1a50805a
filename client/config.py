from __future__ import annotations

import logging
from typing import Any, Dict

from shared.protocol.subprotocols import normalize_subprotocol
from shared.settings import ConfigError, load_env_config

DEFAULT_CONFIG: Dict[str, Any] = {
    "server_url": "ws://localhost:8080/chat",
    "repeater": "",
    "protocol": "binary",
    "heartbeat_interval": 10,
    "reconnect_backoff": 1,
    "max_reconnect_backoff": 30,
    "max_reconnect_retries": 5,
    "log_level": "INFO",
}

CLIENT_CONFIG: Dict[str, Any] = DEFAULT_CONFIG.copy()


def load_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load client configuration from env file/environment variables."""
    load_env_config(DEFAULT_CONFIG, CLIENT_CONFIG, "CLIENT", env_path)
    _validate_config()
    logging.getLogger().setLevel(CLIENT_CONFIG["log_level"])
    return CLIENT_CONFIG


def _validate_config() -> None:
    if not CLIENT_CONFIG["server_url"].startswith(("ws://", "wss://")):
        raise ConfigError("server_url must be a ws:// or wss:// URL")
    if normalize_subprotocol(CLIENT_CONFIG["protocol"]) is None:
        raise ConfigError(f"Unknown protocol {CLIENT_CONFIG['protocol']!r}")
    if CLIENT_CONFIG["heartbeat_interval"] <= 0:
        raise ConfigError("heartbeat_interval must be positive")


def get(key: str, default: Any = None) -> Any:
    return CLIENT_CONFIG.get(key, default)


__all__ = ["CLIENT_CONFIG", "DEFAULT_CONFIG", "ConfigError", "get", "load_config"]

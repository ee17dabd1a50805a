from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


def load_env_config(
    defaults: Mapping[str, Any],
    target: Dict[str, Any],
    prefix: str,
    env_path: str = ".env",
) -> Dict[str, Any]:
    """
    Fill `target` from `<PREFIX>_<KEY>` environment variables (and a .env file
    when present), coercing each value to the type of its default.
    """
    if Path(env_path).exists():
        load_dotenv(env_path)

    for key, default_value in defaults.items():
        env_key = f"{prefix}_{key.upper()}"
        value = os.getenv(env_key, default_value)
        target[key] = coerce_type(value, type(default_value))
    return target


def coerce_type(value: Any, target_type: type) -> Any:
    if isinstance(value, target_type):
        return value
    try:
        if target_type is bool:
            return str(value).lower() in ("1", "true", "yes", "on")
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Cannot convert {value} to {target_type}") from exc


__all__ = ["ConfigError", "load_env_config", "coerce_type"]

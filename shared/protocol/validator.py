from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

import jsonschema

from shared.utils.common import utc_millis

from .constants import DEFAULT_CLOCK_SKEW_MS
from .errors import ClockSkewError, MalformedMessage

if TYPE_CHECKING:
    from .messages import Message

SCHEMA_DIR = Path(__file__).parent / "schemas"


@lru_cache(maxsize=4)
def load_schema(name: str = "message") -> dict:
    """Load a JSON schema bundled under schemas/."""
    path = SCHEMA_DIR / f"{name}.json"
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def validate_payload(payload: Any, schema: Optional[dict] = None) -> None:
    """Check a decoded text frame against the message schema."""
    if schema is None:
        schema = load_schema()
    try:
        jsonschema.validate(instance=payload, schema=schema)
    except jsonschema.ValidationError as exc:
        raise MalformedMessage(f"Schema validation failed: {exc.message}") from exc


def check_skew(message: "Message", now_ms: Optional[int] = None, tolerance_ms: int = DEFAULT_CLOCK_SKEW_MS) -> int:
    """
    Reject messages stamped too far from the local clock.
    Returns the absolute skew in ms when it is within tolerance.
    """
    if now_ms is None:
        now_ms = utc_millis()
    skew = abs(now_ms - message.timestamp)
    if skew > tolerance_ms:
        raise ClockSkewError()
    return skew


def validate_inbound(
    message: "Message",
    now_ms: Optional[int] = None,
    tolerance_ms: int = DEFAULT_CLOCK_SKEW_MS,
) -> bool:
    """
    Run the checks a message passes before it is relayed.
    Heartbeats return False (nothing to forward); skewed clocks raise.
    """
    if message.is_heartbeat:
        return False
    check_skew(message, now_ms, tolerance_ms)
    return True


__all__ = ["SCHEMA_DIR", "load_schema", "validate_payload", "check_skew", "validate_inbound"]

from __future__ import annotations

import time
from typing import Union


def utc_millis() -> int:
    """Current UTC timestamp in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def clamp_duration(value: Union[int, float], maximum: int = 255) -> int:
    """Clamp a tone/silence length in ms into [0, maximum]."""
    ms = int(value)
    if ms > maximum:
        return maximum
    if ms < 0:
        return 0
    return ms


__all__ = ["utc_millis", "clamp_duration"]

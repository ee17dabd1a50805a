from __future__ import annotations

from typing import Annotated, Any, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shared.utils.common import clamp_duration, utc_millis

from .constants import MAX_CLIENTS, MAX_DURATION, MAX_TIMESTAMP, MIN_TIMESTAMP
from .errors import MalformedMessage

DurationMs = Annotated[int, Field(ge=0, le=MAX_DURATION)]


class Message(BaseModel):
    """
    One keying event.

    `duration` alternates tone and silence lengths in milliseconds; an `A`
    could be sent as [80, 80, 240]. An empty list is a heartbeat that only
    refreshes the listener count. `clients` is assigned by the server at
    broadcast time and is not part of equality.
    """

    model_config = ConfigDict(extra="ignore")

    timestamp: int = Field(
        default_factory=utc_millis,
        ge=MIN_TIMESTAMP,
        le=MAX_TIMESTAMP,
        description="Milliseconds since the Unix epoch",
    )
    clients: int = Field(default=0, ge=0, le=MAX_CLIENTS, description="Listeners on the repeater")
    duration: List[DurationMs] = Field(default_factory=list, description="Tone/silence lengths in ms")

    @classmethod
    def create(cls, timestamp: Optional[int] = None, durations: Iterable[Union[int, float]] = ()) -> "Message":
        """Build a message, clamping every duration into 0-255 ms."""
        return cls(
            timestamp=utc_millis() if timestamp is None else int(timestamp),
            duration=[clamp_duration(d, MAX_DURATION) for d in durations],
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedMessage(f"Message validation failed: {exc}") from exc

    @property
    def is_heartbeat(self) -> bool:
        return not self.duration

    def stamped(self, clients: int) -> "Message":
        """Copy of this message carrying the given listener count."""
        return self.model_copy(update={"clients": clients})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.timestamp == other.timestamp and list(self.duration) == list(other.duration)


__all__ = ["Message", "DurationMs"]

from __future__ import annotations

from typing import List, Optional, Union

import pytest

from shared.protocol.errors import DeliveryFailure
from shared.protocol.framing import FrameCache
from shared.protocol.messages import Message

FIXED_NOW = 1_700_000_000_000


class RecordingEndpoint:
    """Endpoint double that keeps every message it is handed."""

    def __init__(self, name: str = "", accept: bool = True, raise_error: Union[bool, Exception] = False) -> None:
        self.name = name
        self.accept = accept
        self.raise_error = raise_error
        self.received: List[Message] = []

    def send(self, message: Message, frames: Optional[FrameCache] = None) -> bool:
        if isinstance(self.raise_error, Exception):
            raise self.raise_error
        if self.raise_error:
            raise DeliveryFailure()
        if not self.accept:
            return False
        self.received.append(message)
        return True

    def summary(self):
        return [(m.clients, list(m.duration)) for m in self.received]

    def clear(self) -> None:
        self.received.clear()


@pytest.fixture
def endpoint_factory():
    return RecordingEndpoint


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW

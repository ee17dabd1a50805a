from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from shared.protocol import framing
from shared.protocol.errors import EncodingFailure, ProtocolError
from shared.protocol.messages import Message
from shared.utils.common import utc_millis

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


class Endpoint(Protocol):
    """Anything that can take a Message for one subscriber."""

    def send(self, message: Message, frames: Optional[framing.FrameCache] = None) -> bool:
        """Accept a message without blocking; False means it was not delivered.

        `frames` holds the encoded forms of `message` shared by every
        subscriber of the same broadcast.
        """
        ...


@dataclass(frozen=True)
class Subscription:
    """Opaque handle for one joined endpoint, issued by the registry."""

    id: int
    channel: str


class Repeater:
    """
    Fan-out group for a single channel.

    Every broadcast carries the current listener count. Methods are
    synchronous and are only called from the registry worker.
    """

    def __init__(self, name: str = "", clock: Clock = utc_millis) -> None:
        self.name = name
        self.clock = clock
        self._subscribers: Dict[Subscription, Endpoint] = {}

    def join(self, subscription: Subscription, endpoint: Endpoint) -> None:
        self._subscribers[subscription] = endpoint
        self.send_heartbeat()

    def part(self, subscription: Subscription) -> bool:
        if self._subscribers.pop(subscription, None) is None:
            return False
        if self._subscribers:
            self.send_heartbeat()
        return True

    def send(self, message: Message) -> int:
        """Stamp the listener count and deliver to every subscriber.

        Returns how many endpoints accepted the message. A failing endpoint
        is skipped, not removed; its connection is expected to part itself.
        Each codec encodes the broadcast at most once.
        """
        frames = framing.FrameCache(message.stamped(self.listeners()))
        try:
            frames.frame(framing.BINARY_CODEC)
        except EncodingFailure:
            logger.exception("Dropping unencodable message on repeater %r", self.name)
            return 0

        delivered = 0
        for subscription, endpoint in list(self._subscribers.items()):
            try:
                accepted = endpoint.send(frames.message, frames)
            except ProtocolError as exc:
                logger.debug("Delivery to %s on %r raised: %s", subscription.id, self.name, exc)
                accepted = False
            except Exception:
                logger.exception("Delivery to %s on %r crashed", subscription.id, self.name)
                accepted = False
            if accepted:
                delivered += 1
            else:
                logger.debug("Delivery to %s on %r failed", subscription.id, self.name)
        return delivered

    def send_heartbeat(self) -> int:
        """Broadcast an empty message so everyone sees the new count."""
        return self.send(Message.create(self.clock()))

    def listeners(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscription: object) -> bool:
        return subscription in self._subscribers


__all__ = ["Clock", "Endpoint", "Subscription", "Repeater"]

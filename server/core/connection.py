from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from websockets.exceptions import ConnectionClosed

from shared.protocol.framing import Codec, Frame, FrameCache
from shared.protocol.messages import Message

from .repeater import Subscription

logger = logging.getLogger(__name__)

DEFAULT_OUTBOX_SIZE = 32


@dataclass
class ConnectionContext:
    peername: str
    channel: str
    subscription: Optional[Subscription] = None


class WebSocketEndpoint:
    """Subscriber endpoint backed by a WebSocket connection.

    `send` never blocks: frames go into a bounded outbox that `pump` drains
    onto the socket. Once the outbox overflows or the socket fails, the
    endpoint stays failed and the connection handler takes it down.
    """

    def __init__(self, websocket: Any, codec: Codec, outbox_size: int = DEFAULT_OUTBOX_SIZE) -> None:
        self.websocket = websocket
        self.codec = codec
        self.failed = asyncio.Event()
        self._outbox: asyncio.Queue[Frame] = asyncio.Queue(maxsize=outbox_size)

    def send(self, message: Message, frames: Optional[FrameCache] = None) -> bool:
        if self.failed.is_set():
            return False
        frame = frames.frame(self.codec) if frames is not None else self.codec.encode(message)
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.debug("Outbox full for %s", getattr(self.websocket, "remote_address", "?"))
            self.failed.set()
            return False
        return True

    async def pump(self) -> None:
        """Write queued frames to the socket until it closes."""
        while True:
            frame = await self._outbox.get()
            try:
                await self.websocket.send(frame)
            except ConnectionClosed:
                self.failed.set()
                return
            finally:
                self._outbox.task_done()

    def backlog(self) -> int:
        return self._outbox.qsize()


__all__ = ["ConnectionContext", "WebSocketEndpoint", "DEFAULT_OUTBOX_SIZE"]

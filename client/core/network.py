from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlencode

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from client.config import CLIENT_CONFIG
from shared.protocol import framing
from shared.protocol.errors import ProtocolError, StatusCode
from shared.protocol.messages import Message
from shared.utils.common import utc_millis

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], Awaitable[None]]


class NetworkError(ProtocolError):
    """Network level error surfaced to higher layers."""

    pass


class RepeaterClient:
    """WebSocket client for one repeater: reconnect, heartbeat and dispatch."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, clock: Callable[[], int] = utc_millis) -> None:
        self.config = config or CLIENT_CONFIG
        self.server_url: str = self.config["server_url"]
        self.repeater: str = self.config["repeater"]
        self.codec = framing.codec_for(self.config["protocol"])
        self.heartbeat_interval: float = float(self.config["heartbeat_interval"])
        self.backoff: float = float(self.config["reconnect_backoff"])
        self.max_backoff: float = float(self.config["max_reconnect_backoff"])
        self.max_retries: int = int(self.config["max_reconnect_retries"])
        self.clock = clock

        self.websocket: Optional[ClientConnection] = None
        self.connected: bool = False
        self.listeners: int = 0
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._handlers: List[MessageHandler] = []

    @property
    def uri(self) -> str:
        return f"{self.server_url}?{urlencode({'repeater': self.repeater})}"

    async def connect(self) -> None:
        if self.connected:
            return

        retries = 0
        delay = self.backoff
        while retries <= self.max_retries:
            try:
                self.websocket = await connect(self.uri, subprotocols=[self.codec.subprotocol.value])
                self.connected = True
                logger.info("Connected to %s (%s)", self.uri, self.codec.subprotocol.value)
                self._receive_task = asyncio.create_task(self._receive_loop(), name="client-recv-loop")
                self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="client-heartbeat")
                return
            except (OSError, asyncio.TimeoutError, InvalidHandshake) as exc:
                retries += 1
                logger.warning("Connect attempt %s failed: %s", retries, exc)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_backoff)
        raise NetworkError(StatusCode.INTERNAL_ERROR, message="Exceeded max reconnect attempts")

    async def close(self) -> None:
        self.connected = False
        for task in (self._heartbeat_task, self._receive_task):
            if task and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._heartbeat_task = self._receive_task = None
        if self.websocket:
            await self.websocket.close()
        logger.info("Repeater client closed")

    async def send(self, message: Message) -> None:
        if not self.connected:
            await self.connect()
        assert self.websocket is not None
        try:
            await self.websocket.send(self.codec.encode(message))
            logger.debug("Sent %s", message.duration)
        except ConnectionClosed as exc:
            self.connected = False
            raise NetworkError(StatusCode.GOING_AWAY, message=f"Connection lost: {exc}") from exc

    async def send_durations(self, durations: Iterable[Union[int, float]]) -> Message:
        """Send one keying event stamped with the local clock."""
        message = Message.create(self.clock(), durations)
        await self.send(message)
        return message

    def register_handler(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    async def _receive_loop(self) -> None:
        assert self.websocket is not None
        try:
            async for frame in self.websocket:
                try:
                    message = framing.decode_frame(frame)
                except ProtocolError as exc:
                    logger.warning("Protocol error: %s", exc)
                    continue
                self.listeners = message.clients
                await self._dispatch(message)
        except ConnectionClosed as exc:
            logger.error("Receive loop terminated: %s", exc)
        finally:
            self.connected = False

    async def _dispatch(self, message: Message) -> None:
        for handler in self._handlers:
            try:
                await handler(message)
            except Exception as exc:
                logger.exception("Handler error: %s", exc)

    async def _heartbeat_loop(self) -> None:
        while self.connected:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.send(Message.create(self.clock()))
            except NetworkError as exc:
                logger.debug("Heartbeat failed: %s", exc)
                break

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from shared.protocol.messages import Message

from .repeater import Endpoint, Repeater, Subscription

logger = logging.getLogger(__name__)

RepeaterFactory = Callable[[str], Repeater]

DEFAULT_QUEUE_SIZE = 5


class RequestType(Enum):
    JOIN = "join"
    PART = "part"
    SEND = "send"


@dataclass
class Request:
    kind: RequestType
    channel: str
    subscription: Optional[Subscription] = None
    endpoint: Optional[Endpoint] = None
    message: Optional[Message] = None


class ChannelRegistry:
    """Maps channel names 1-1 to repeaters.

    join/part/send only enqueue a request. One worker task applies the
    requests in FIFO order, each to completion, so the mapping and the
    repeaters never need locks. A full queue makes callers wait.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE, repeater_factory: RepeaterFactory = Repeater) -> None:
        self.repeater_factory = repeater_factory
        self._entries: Dict[str, Repeater] = {}
        self._requests: asyncio.Queue[Request] = asyncio.Queue(maxsize=queue_size)
        self._ids = itertools.count(1)
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="channel-registry")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscription(self, channel: str) -> Subscription:
        """Issue a fresh handle for `channel` without joining."""
        return Subscription(next(self._ids), channel)

    async def join(self, channel: str, endpoint: Endpoint, subscription: Optional[Subscription] = None) -> Subscription:
        """Queue `endpoint` to join `channel`; returns the handle to part with."""
        if subscription is None:
            subscription = self.subscription(channel)
        elif subscription.channel != channel:
            raise ValueError(f"Subscription for {subscription.channel!r} cannot join {channel!r}")
        await self._requests.put(Request(RequestType.JOIN, channel, subscription=subscription, endpoint=endpoint))
        return subscription

    async def part(self, subscription: Subscription) -> None:
        await self._requests.put(Request(RequestType.PART, subscription.channel, subscription=subscription))

    async def send(self, channel: str, message: Message) -> None:
        await self._requests.put(Request(RequestType.SEND, channel, message=message))

    async def step(self) -> None:
        """Take one request off the queue and apply it."""
        request = await self._requests.get()
        try:
            self._process(request)
        except Exception as exc:
            logger.exception("Registry failed on %s for %r: %s", request.kind.value, request.channel, exc)
        finally:
            self._requests.task_done()

    async def flush(self) -> None:
        """Wait until every request queued so far has been applied."""
        await self._requests.join()

    def channels(self) -> List[str]:
        return list(self._entries)

    def listeners(self, channel: str) -> int:
        repeater = self._entries.get(channel)
        return repeater.listeners() if repeater else 0

    def pending(self) -> int:
        return self._requests.qsize()

    async def _run(self) -> None:
        while True:
            await self.step()

    def _process(self, request: Request) -> None:
        repeater = self._entries.get(request.channel)

        if request.kind is RequestType.JOIN:
            if repeater is None:
                repeater = self.repeater_factory(request.channel)
                self._entries[request.channel] = repeater
                logger.debug("Created repeater %r", request.channel)
            repeater.join(request.subscription, request.endpoint)
        elif request.kind is RequestType.PART:
            if repeater is None:
                logger.warning("Part of unknown channel %r", request.channel)
                return
            repeater.part(request.subscription)
            if repeater.listeners() == 0:
                del self._entries[request.channel]
                logger.debug("Removed empty repeater %r", request.channel)
        elif request.kind is RequestType.SEND:
            if repeater is None:
                logger.warning("Send to unknown channel %r", request.channel)
                return
            repeater.send(request.message)


__all__ = ["ChannelRegistry", "Request", "RequestType", "DEFAULT_QUEUE_SIZE"]

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from http import HTTPStatus
from pathlib import Path
from typing import Optional, Union
from urllib.parse import parse_qs, urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from shared.protocol import framing, validator
from shared.protocol.constants import DEFAULT_CLOCK_SKEW_MS, DEFAULT_REPEATER
from shared.protocol.errors import DeliveryFailure, ProtocolError
from shared.protocol.subprotocols import SUPPORTED_SUBPROTOCOLS
from shared.utils.common import utc_millis

from .connection import DEFAULT_OUTBOX_SIZE, ConnectionContext, WebSocketEndpoint
from .registry import ChannelRegistry
from .repeater import Clock
from .static import StaticFiles

logger = logging.getLogger(__name__)

REPEATER_PARAM = "repeater"


class RelayServer:
    """WebSocket front end that connects clients to the channel registry."""

    def __init__(
        self,
        host: str,
        port: int,
        registry: ChannelRegistry,
        chat_path: str = "/chat",
        static_dir: Optional[Union[str, Path]] = None,
        outbox_size: int = DEFAULT_OUTBOX_SIZE,
        clock_skew_ms: int = DEFAULT_CLOCK_SKEW_MS,
        clock: Clock = utc_millis,
    ) -> None:
        self.host = host
        self.port = port
        self.registry = registry
        self.chat_path = chat_path
        self.static_files = StaticFiles(static_dir) if static_dir else None
        self.outbox_size = outbox_size
        self.clock_skew_ms = clock_skew_ms
        self.clock = clock
        self._server: Optional[Server] = None

    async def start(self) -> None:
        self._server = await serve(
            self._handle_client,
            self.host,
            self.port,
            subprotocols=list(SUPPORTED_SUBPROTOCOLS),
            select_subprotocol=_select_subprotocol,
            process_request=self._process_request,
        )
        self.port = self.bound_port()
        logger.info("Relay listening on %s:%s%s", self.host, self.port, self.chat_path)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    def bound_port(self) -> int:
        if self._server is None:
            return self.port
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return self.port

    async def _process_request(self, connection: ServerConnection, request: Request) -> Optional[Response]:
        path = urlsplit(request.path).path
        if path == self.chat_path:
            return None
        if self.static_files is None:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return await self.static_files.respond(connection, path)

    async def _handle_client(self, websocket: ServerConnection) -> None:
        request = websocket.request
        query = parse_qs(urlsplit(request.path).query, keep_blank_values=True)
        channel = query.get(REPEATER_PARAM, [DEFAULT_REPEATER])[0]
        forwarded_for = request.headers.get("X-Forwarded-For", "")
        ctx = ConnectionContext(
            peername=f"<{forwarded_for}|{websocket.remote_address}>",
            channel=channel,
        )

        try:
            codec = framing.codec_for(websocket.subprotocol)
        except ProtocolError as exc:
            logger.info("Client %s rejected: %s", ctx.peername, exc.message)
            await websocket.close(exc.status, exc.close_reason())
            return

        endpoint = WebSocketEndpoint(websocket, codec, self.outbox_size)
        ctx.subscription = self.registry.subscription(channel)
        pump = asyncio.create_task(endpoint.pump(), name=f"relay-pump-{ctx.subscription.id}")
        watchdog = asyncio.create_task(
            self._watch_delivery(websocket, endpoint), name=f"relay-watch-{ctx.subscription.id}"
        )
        logger.info("%s %r connect", ctx.peername, channel)
        try:
            await self.registry.join(channel, endpoint, ctx.subscription)
            await self._receive_loop(websocket, ctx)
        except ProtocolError as exc:
            logger.warning("Protocol error for %s: %s", ctx.peername, exc)
            await websocket.close(exc.status, exc.close_reason())
        except ConnectionClosed:
            pass
        finally:
            await self.registry.part(ctx.subscription)
            for task in (pump, watchdog):
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            logger.info("%s %r disconnect", ctx.peername, channel)

    async def _receive_loop(self, websocket: ServerConnection, ctx: ConnectionContext) -> None:
        async for frame in websocket:
            message = framing.decode_frame(frame)
            if not validator.validate_inbound(message, now_ms=self.clock(), tolerance_ms=self.clock_skew_ms):
                continue
            await self.registry.send(ctx.channel, message)

    async def _watch_delivery(self, websocket: ServerConnection, endpoint: WebSocketEndpoint) -> None:
        await endpoint.failed.wait()
        error = DeliveryFailure()
        logger.info("Closing %s: %s", websocket.remote_address, error.message)
        await websocket.close(error.status, error.close_reason())


def _select_subprotocol(connection: ServerConnection, subprotocols: Sequence[str]) -> Optional[str]:
    """Pick the first supported subprotocol; None lets the handler refuse the client."""
    offered = set(subprotocols)
    for candidate in SUPPORTED_SUBPROTOCOLS:
        if candidate.value in offered:
            return candidate.value
    return None


__all__ = ["RelayServer", "REPEATER_PARAM"]

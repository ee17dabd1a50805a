from __future__ import annotations

import asyncio
import logging

from server.config import SERVER_CONFIG, load_server_config
from server.core import ChannelRegistry, RelayServer


async def run_server() -> None:
    load_server_config()
    logging.basicConfig(level=SERVER_CONFIG["log_level"])

    registry = ChannelRegistry(queue_size=SERVER_CONFIG["queue_size"])
    registry.start()

    server = RelayServer(
        SERVER_CONFIG["host"],
        SERVER_CONFIG["port"],
        registry,
        chat_path=SERVER_CONFIG["chat_path"],
        static_dir=SERVER_CONFIG["static_dir"],
        outbox_size=SERVER_CONFIG["outbox_size"],
        clock_skew_ms=SERVER_CONFIG["clock_skew_ms"],
    )
    await server.start()
    try:
        await asyncio.Event().wait()  # keep running
    finally:
        await server.stop()
        await registry.stop()


def main() -> None:
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

from __future__ import annotations

import asyncio
import logging
import sys
from typing import List

from client.config import CLIENT_CONFIG, load_config
from client.core import RepeaterClient
from shared.protocol.messages import Message

logger = logging.getLogger(__name__)


def parse_durations(line: str) -> List[int]:
    """Turn `80 80 240` (or `80,80,240`) into a duration list."""
    return [int(token) for token in line.replace(",", " ").split()]


async def _print_message(message: Message) -> None:
    if message.is_heartbeat:
        logger.info("listeners=%d", message.clients)
    else:
        logger.info("listeners=%d ts=%d durations=%s", message.clients, message.timestamp, message.duration)


async def run_client() -> None:
    load_config()
    logging.basicConfig(level=CLIENT_CONFIG["log_level"])
    client = RepeaterClient()
    client.register_handler(_print_message)
    await client.connect()
    try:
        # Each stdin line is one keying event; EOF ends the session.
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            try:
                durations = parse_durations(line)
            except ValueError:
                logger.warning("Ignoring %r: expected whitespace separated milliseconds", line.strip())
                continue
            if durations:
                await client.send_durations(durations)
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(run_client())

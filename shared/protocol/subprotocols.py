from __future__ import annotations

from enum import StrEnum
from typing import Dict, Optional, Union


class Subprotocol(StrEnum):
    """
    WebSocket subprotocols a client may negotiate.
    The chosen one fixes the wire form for the lifetime of the connection.
    """

    JSON = "json.vail.woozle.org"
    BINARY = "binary.vail.woozle.org"


SHORT_NAMES: Dict[str, Subprotocol] = {
    "json": Subprotocol.JSON,
    "binary": Subprotocol.BINARY,
}

# Server preference order when a client offers both.
SUPPORTED_SUBPROTOCOLS = (Subprotocol.JSON, Subprotocol.BINARY)


def normalize_subprotocol(value: Union[str, Subprotocol, None]) -> Optional[Subprotocol]:
    """Map a negotiated name (or its short form such as `binary`) to the enum."""
    if value is None:
        return None
    if isinstance(value, Subprotocol):
        return value
    text = str(value).strip()
    if text.lower() in SHORT_NAMES:
        return SHORT_NAMES[text.lower()]
    try:
        return Subprotocol(text)
    except ValueError:
        return None


__all__ = [
    "Subprotocol",
    "SHORT_NAMES",
    "SUPPORTED_SUBPROTOCOLS",
    "normalize_subprotocol",
]

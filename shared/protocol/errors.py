from __future__ import annotations

from enum import IntEnum
from typing import Optional

MAX_CLOSE_REASON_BYTES = 123


class StatusCode(IntEnum):
    """WebSocket close codes the relay uses when ending a connection."""

    NORMAL_CLOSURE = 1000
    GOING_AWAY = 1001
    INVALID_PAYLOAD = 1007
    POLICY_VIOLATION = 1008
    INTERNAL_ERROR = 1011
    TRY_AGAIN_LATER = 1013


class ErrorCode(IntEnum):
    """Domain specific error codes."""

    MALFORMED_MESSAGE = 2001
    ENCODING_FAILED = 2002
    CLOCK_SKEW = 2003
    UNSUPPORTED_SUBPROTOCOL = 2004
    DELIVERY_FAILED = 2005


class ProtocolError(Exception):
    """Structured protocol exception carrying status + code + message."""

    def __init__(self, status: StatusCode, code: Optional[ErrorCode] = None, message: str = "") -> None:
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"{status.name} ({int(status)}): {message} (code={code.name if code else 'n/a'})")

    def close_reason(self) -> str:
        """Message text cut down to what fits in a WebSocket close frame."""
        raw = self.message.encode("utf-8")[:MAX_CLOSE_REASON_BYTES]
        return raw.decode("utf-8", errors="ignore")


class MalformedMessage(ProtocolError):
    """Inbound frame could not be decoded into a Message."""

    def __init__(self, message: str) -> None:
        super().__init__(StatusCode.INVALID_PAYLOAD, ErrorCode.MALFORMED_MESSAGE, message)


class EncodingFailure(ProtocolError):
    """In-memory Message holds values the wire format cannot carry."""

    def __init__(self, message: str) -> None:
        super().__init__(StatusCode.INTERNAL_ERROR, ErrorCode.ENCODING_FAILED, message)


class ClockSkewError(ProtocolError):
    def __init__(self, message: str = "Your clock is off by too much") -> None:
        super().__init__(StatusCode.INVALID_PAYLOAD, ErrorCode.CLOCK_SKEW, message)


class DeliveryFailure(ProtocolError):
    """A subscriber endpoint refused a frame."""

    def __init__(self, message: str = "subscriber fell behind") -> None:
        super().__init__(StatusCode.TRY_AGAIN_LATER, ErrorCode.DELIVERY_FAILED, message)


__all__ = [
    "StatusCode",
    "ErrorCode",
    "ProtocolError",
    "MalformedMessage",
    "EncodingFailure",
    "ClockSkewError",
    "DeliveryFailure",
]

"""
Wire codecs for keying messages.

Binary frames are a big-endian int64 timestamp and uint16 listener count
followed by one byte per duration. There is no length field: the duration
count is whatever is left in the frame, so these helpers rely on WebSocket
message boundaries and must not be used over a raw byte stream.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

from pydantic import ValidationError

from . import validator
from .constants import ENCODING, HEADER_FORMAT, HEADER_SIZE, MAX_CLIENTS
from .errors import EncodingFailure, MalformedMessage, ProtocolError, StatusCode, ErrorCode
from .messages import Message
from .subprotocols import Subprotocol, normalize_subprotocol

Frame = Union[bytes, str]

HEADER = struct.Struct(HEADER_FORMAT)


def encode_binary(message: Message) -> bytes:
    """Encode a message into a binary frame."""
    try:
        return HEADER.pack(message.timestamp, message.clients) + bytes(message.duration)
    except (struct.error, TypeError, ValueError) as exc:
        raise EncodingFailure(f"Binary encode failed: {exc}") from exc


def decode_binary(data: Union[bytes, bytearray, memoryview]) -> Message:
    """Decode a binary frame; every byte after the header is a duration."""
    data = bytes(data)
    if len(data) < HEADER_SIZE:
        raise MalformedMessage(f"Frame too short: {len(data)} bytes, need at least {HEADER_SIZE}")
    timestamp, clients = HEADER.unpack_from(data)
    return Message(timestamp=timestamp, clients=clients, duration=list(data[HEADER_SIZE:]))


def encode_json(message: Message) -> str:
    """Encode a message into a text frame (timestamp / clients / duration)."""
    try:
        checked = Message.model_validate(message.model_dump())
    except (ValidationError, TypeError) as exc:
        raise EncodingFailure(f"JSON encode failed: {exc}") from exc
    return json.dumps(checked.model_dump(), separators=(",", ":"))


def decode_json(data: Union[str, bytes]) -> Message:
    """Decode a text frame, checking it against the message schema."""
    try:
        text = data.decode(ENCODING) if isinstance(data, (bytes, bytearray)) else data
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedMessage(f"Decode failed: {exc}") from exc
    validator.validate_payload(payload)
    if payload.get("duration") is None:
        payload["duration"] = []
    # Senders may put anything in clients; only a count that fits is kept.
    clients = payload.get("clients")
    if isinstance(clients, bool) or not isinstance(clients, int) or not 0 <= clients <= MAX_CLIENTS:
        payload["clients"] = 0
    return Message.from_dict(payload)


def decode_frame(frame: Frame) -> Message:
    """Decode by frame type: text frames are JSON, binary frames are binary."""
    if isinstance(frame, str):
        return decode_json(frame)
    return decode_binary(frame)


@dataclass(frozen=True)
class Codec:
    """Encode/decode pair chosen once per connection from its subprotocol."""

    subprotocol: Subprotocol
    binary: bool
    encode: Callable[[Message], Frame]
    decode: Callable[[Frame], Message]


BINARY_CODEC = Codec(Subprotocol.BINARY, True, encode_binary, decode_binary)
JSON_CODEC = Codec(Subprotocol.JSON, False, encode_json, decode_json)


class FrameCache:
    """Frames for one broadcast, encoded at most once per codec."""

    def __init__(self, message: Message) -> None:
        self.message = message
        self._frames: Dict[Codec, Frame] = {}

    def frame(self, codec: Codec) -> Frame:
        frame = self._frames.get(codec)
        if frame is None:
            frame = codec.encode(self.message)
            self._frames[codec] = frame
        return frame


def codec_for(subprotocol: Optional[str]) -> Codec:
    """Pick the codec for a negotiated subprotocol."""
    selected = normalize_subprotocol(subprotocol)
    if selected is Subprotocol.BINARY:
        return BINARY_CODEC
    if selected is Subprotocol.JSON:
        return JSON_CODEC
    raise ProtocolError(
        StatusCode.POLICY_VIOLATION,
        ErrorCode.UNSUPPORTED_SUBPROTOCOL,
        "client must speak a vail protocol",
    )


__all__ = [
    "Frame",
    "HEADER",
    "Codec",
    "BINARY_CODEC",
    "JSON_CODEC",
    "FrameCache",
    "codec_for",
    "encode_binary",
    "decode_binary",
    "encode_json",
    "decode_json",
    "decode_frame",
]

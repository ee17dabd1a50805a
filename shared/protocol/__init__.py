"""
Shared protocol package: message model, wire codecs, subprotocol names,
errors and inbound validation for both client and server.
"""

from .constants import DEFAULT_CLOCK_SKEW_MS, ENCODING, HEADER_SIZE, MAX_CLIENTS, MAX_DURATION
from .errors import (
    ClockSkewError,
    DeliveryFailure,
    EncodingFailure,
    ErrorCode,
    MalformedMessage,
    ProtocolError,
    StatusCode,
)
from .framing import (
    BINARY_CODEC,
    JSON_CODEC,
    Codec,
    FrameCache,
    codec_for,
    decode_binary,
    decode_frame,
    decode_json,
    encode_binary,
    encode_json,
)
from .messages import Message
from .subprotocols import SUPPORTED_SUBPROTOCOLS, Subprotocol, normalize_subprotocol
from .validator import check_skew, load_schema, validate_inbound, validate_payload

__all__ = [
    "DEFAULT_CLOCK_SKEW_MS",
    "ENCODING",
    "HEADER_SIZE",
    "MAX_CLIENTS",
    "MAX_DURATION",
    "ErrorCode",
    "StatusCode",
    "ProtocolError",
    "MalformedMessage",
    "EncodingFailure",
    "ClockSkewError",
    "DeliveryFailure",
    "Codec",
    "BINARY_CODEC",
    "JSON_CODEC",
    "codec_for",
    "encode_binary",
    "decode_binary",
    "encode_json",
    "decode_json",
    "decode_frame",
    "FrameCache",
    "Message",
    "Subprotocol",
    "SUPPORTED_SUBPROTOCOLS",
    "normalize_subprotocol",
    "load_schema",
    "validate_payload",
    "check_skew",
    "validate_inbound",
]

"""Protocol-wide constants shared by client and server."""

ENCODING = "utf-8"
HEADER_FORMAT = ">qH"  # int64 timestamp, uint16 listener count
HEADER_SIZE = 10
MAX_DURATION = 255  # durations travel as single bytes
MAX_CLIENTS = 0xFFFF
MIN_TIMESTAMP = -(2**63)
MAX_TIMESTAMP = 2**63 - 1
DEFAULT_CLOCK_SKEW_MS = 10_000
DEFAULT_REPEATER = ""

__all__ = [
    "ENCODING",
    "HEADER_FORMAT",
    "HEADER_SIZE",
    "MAX_DURATION",
    "MAX_CLIENTS",
    "MIN_TIMESTAMP",
    "MAX_TIMESTAMP",
    "DEFAULT_CLOCK_SKEW_MS",
    "DEFAULT_REPEATER",
]

# castctl/protocol/core/defs.py
"""
Wire-level constants of the cast v2 control protocol.
"""
from __future__ import annotations

from enum import IntEnum

DEFAULT_PORT = 8009

# Frame: uint32 big-endian length prefix + envelope
FRAME_HEADER_SIZE = 4

SENDER_ID = "sender-0"
RECEIVER_ID = "receiver-0"

NS_CONNECTION = "urn:x-cast:com.google.cast.tp.connection"
NS_RECEIVER = "urn:x-cast:com.google.cast.receiver"
NS_HEARTBEAT = "urn:x-cast:com.google.cast.tp.heartbeat"
NS_MEDIA = "urn:x-cast:com.google.cast.media"

# CastMessage field numbers
TAG_PROTOCOL_VERSION = 1
TAG_SOURCE_ID = 2
TAG_DESTINATION_ID = 3
TAG_NAMESPACE = 4
TAG_PAYLOAD_TYPE = 5
TAG_PAYLOAD_UTF8 = 6
TAG_PAYLOAD_BINARY = 7

# Request ids used in JSON payloads
STATUS_REQUEST_ID = 1
CONTROL_REQUEST_ID = 2


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    FIXED32 = 5

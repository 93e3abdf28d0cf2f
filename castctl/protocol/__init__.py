# protocol/__init__.py

from .core import FieldCursor, FrameReader, encode_envelope
from .errors import DecodeError, EncodeError, ProtocolError, TruncatedFrame
from .results import CommandResult

__all__ = [
    "FieldCursor", "FrameReader", "encode_envelope",
    "ProtocolError", "DecodeError", "TruncatedFrame", "EncodeError",
    "CommandResult",
]

# protocol/core/__init__.py

from .decoder import Field, FieldCursor, FieldHeader, decode_header, decode_varint, render_frame
from .envelope import encode_envelope, frame
from .reader import FrameReader

__all__ = [
    "Field", "FieldCursor", "FieldHeader", "decode_header", "decode_varint", "render_frame",
    "encode_envelope", "frame",
    "FrameReader",
]

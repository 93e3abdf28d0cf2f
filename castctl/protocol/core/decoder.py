# castctl/protocol/core/decoder.py
"""
Minimal decoder for the envelope's tag/wire-type binary encoding.

Only the two shapes the control protocol uses are understood: varint
scalars and length-delimited byte strings. No message objects are built;
callers walk the fields with FieldCursor and pick what they need.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from castctl.protocol.errors import DecodeError, TruncatedFrame
from .defs import WireType

Buffer = Union[bytes, bytearray, memoryview]


def decode_varint(buf: Buffer, offset: int = 0, end: Optional[int] = None) -> Tuple[int, int]:
    """
    Decode an unsigned varint starting at buf[offset].

    Returns (value, bytes_consumed). Raises TruncatedFrame when the
    continuation bit runs past `end`.
    """
    end = len(buf) if end is None else min(end, len(buf))
    value = 0
    shift = 0
    pos = offset
    while True:
        if pos >= end:
            raise TruncatedFrame(offset, pos - offset + 1, end)
        b = buf[pos]
        value |= (b & 0x7F) << shift
        pos += 1
        if not b & 0x80:
            return value, pos - offset
        shift += 7


@dataclass(frozen=True)
class FieldHeader:
    tag: int
    wire_type: int
    length_or_value: int
    consumed: int


def decode_header(buf: Buffer, offset: int = 0, end: Optional[int] = None) -> FieldHeader:
    """
    Decode a single-byte tag/wire-type header followed by a varint.

    For LENGTH_DELIMITED the varint is the byte length of the data that
    follows; for VARINT it is the scalar itself.
    """
    end = len(buf) if end is None else min(end, len(buf))
    if offset >= end:
        raise TruncatedFrame(offset, 1, end)
    key = buf[offset]
    value, used = decode_varint(buf, offset + 1, end)
    return FieldHeader(tag=key >> 3, wire_type=key & 0x07, length_or_value=value, consumed=1 + used)


@dataclass(frozen=True)
class Field:
    tag: int
    wire_type: int
    value: int = 0
    data: bytes = b""

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


class FieldCursor:
    """
    Bounds-checked walk over the fields of one envelope.

    Iteration stops at `end`; a field whose declared length overruns the
    buffer raises TruncatedFrame instead of yielding partial data.
    """

    def __init__(self, buf: Buffer, start: int = 0, end: Optional[int] = None):
        self.buf = buf
        self.offset = start
        self.end = len(buf) if end is None else min(end, len(buf))

    def __iter__(self) -> Iterator[Field]:
        while self.offset < self.end:
            yield self.next_field()

    def next_field(self) -> Field:
        hdr = decode_header(self.buf, self.offset, self.end)
        pos = self.offset + hdr.consumed

        if hdr.wire_type == WireType.VARINT:
            self.offset = pos
            return Field(tag=hdr.tag, wire_type=hdr.wire_type, value=hdr.length_or_value)

        if hdr.wire_type == WireType.LENGTH_DELIMITED:
            stop = pos + hdr.length_or_value
            if stop > self.end:
                raise TruncatedFrame(self.offset, stop - self.offset, self.end)
            self.offset = stop
            return Field(
                tag=hdr.tag,
                wire_type=hdr.wire_type,
                value=hdr.length_or_value,
                data=bytes(self.buf[pos:stop]),
            )

        raise DecodeError(f"unsupported wire type {hdr.wire_type} for tag {hdr.tag} at offset {self.offset}")


def render_frame(buf: Buffer) -> str:
    """Printable rendering of raw bytes, python bytes-literal style."""
    return "".join(chr(b) if 31 < b < 127 else f"\\x{b:02X}" for b in bytes(buf))

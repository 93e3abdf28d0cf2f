# castctl/protocol/errors.py

class ProtocolError(Exception):
    """Base for protocol-level failures (framing/decode/encode)."""

class DecodeError(ProtocolError):
    pass

class TruncatedFrame(DecodeError):
    def __init__(self, offset: int, needed: int, end: int):
        super().__init__(f"field at offset {offset} needs {needed} bytes, frame ends at {end}")
        self.offset = offset
        self.needed = needed
        self.end = end

class EncodeError(ProtocolError):
    pass

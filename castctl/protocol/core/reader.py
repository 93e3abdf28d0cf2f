# castctl/protocol/core/reader.py
from __future__ import annotations

import logging
import time
from typing import Optional

from castctl.transport.base import Transport
from .defs import FRAME_HEADER_SIZE


class FrameReader:
    """
    Reads length-prefixed frames (uint32 big-endian length + payload).

    read_frame() returns the frame including its 4-byte prefix, or b"" when
    no complete frame could be read. It only blocks once a length prefix has
    been seen, and never longer than `timeout_s`.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        capacity: int = 4096,
        timeout_s: float = 0.1,
        poll_interval_s: float = 0.001,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.capacity = int(capacity)
        self.timeout_s = float(timeout_s)
        self.poll_interval_s = float(poll_interval_s)
        self._log = logger or logging.getLogger(__name__)

    def read_frame(self) -> bytes:
        if self.capacity <= FRAME_HEADER_SIZE or self.transport.available() < FRAME_HEADER_SIZE:
            return b""

        start = time.monotonic()
        length = int.from_bytes(self.transport.peek(FRAME_HEADER_SIZE), "big")
        total = length + FRAME_HEADER_SIZE

        while self.transport.available() < total:
            if time.monotonic() - start > self.timeout_s:
                dropped = self._drain()
                self._log.warning("FRAME_TIMEOUT len=%d dropped=%d", length, dropped)
                return b""
            time.sleep(self.poll_interval_s)

        if total <= self.capacity:
            return self.transport.read(total)

        frame = self.transport.read(self.capacity)
        remaining = total - self.capacity
        while remaining > 0:
            chunk = self.transport.read(remaining)
            if not chunk:
                break
            remaining -= len(chunk)
        self._log.warning("FRAME_TRUNCATED len=%d capacity=%d", length, self.capacity)
        return frame

    def _drain(self) -> int:
        """Discard everything currently buffered so the next prefix starts clean."""
        dropped = 0
        while True:
            n = self.transport.available()
            if n <= 0:
                return dropped
            dropped += len(self.transport.read(n))

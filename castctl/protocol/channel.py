# castctl/protocol/channel.py
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Optional

from castctl.transport.base import Transport
from castctl.transport.errors import TransportIOError

from .core import messages
from .core.defs import NS_CONNECTION, SENDER_ID
from .core.envelope import encode_envelope, frame
from .errors import EncodeError
from .results import CommandResult


class ChannelStatus(Enum):
    DISCONNECTED = "disconnected"
    NEEDS_PING = "needs_ping"
    CONNECTED = "connected"


class FrameWriter:
    """
    Single outbound path shared by all channels of one connection.

    Owns the transport handle and the size limit of one encoded frame;
    channels only hold a reference to the writer.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        capacity: int = 4096,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = transport
        self.capacity = int(capacity)
        self._log = logger or logging.getLogger(__name__)

    def transport_alive(self) -> bool:
        return self.transport.connected()

    def write(self, destination_id: str, namespace: str, payload: str) -> CommandResult:
        if not self.transport.connected():
            return CommandResult.TRANSPORT_UNAVAILABLE

        try:
            raw = frame(encode_envelope(SENDER_ID, destination_id, namespace, payload, max_size=self.capacity))
        except EncodeError as e:
            self._log.warning("ENCODE_FAILED dest=%s ns=%s err=%s", destination_id, namespace, e)
            return CommandResult.ENCODING_FAILURE

        try:
            written = self.transport.write(raw)
        except TransportIOError as e:
            self._log.warning("WRITE_FAILED dest=%s ns=%s err=%s", destination_id, namespace, e)
            return CommandResult.TRANSPORT_UNAVAILABLE

        if written < len(raw):
            self._log.warning("SHORT_WRITE dest=%s written=%d len=%d", destination_id, written, len(raw))
            return CommandResult.SHORT_WRITE

        self._log.debug("TX dest=%s ns=%s payload=%s", destination_id, namespace, payload)
        return CommandResult.OK


class VirtualChannel:
    """
    One logical conversation (device or running application) multiplexed
    over the shared transport.

    Keeps the destination id and the keepalive timer; status is derived on
    every read from the transport state, the connected latch and the time
    since the last inbound message.
    """

    def __init__(self, writer: FrameWriter, *, ping_interval_s: float = 5.0, name: str = "channel"):
        self._writer = writer
        self.ping_interval_s = float(ping_interval_s)
        self.name = name

        self._destination_id = ""
        self._last_activity_at = 0.0
        self._connected = False

    @property
    def destination_id(self) -> str:
        return self._destination_id

    def connect(self, destination_id: str) -> CommandResult:
        self._destination_id = destination_id
        result = self.write_msg(NS_CONNECTION, messages.connect())
        # keepalive deadline starts at connect time
        self.pinged()
        self._connected = True
        return result

    def pinged(self) -> None:
        self._last_activity_at = time.monotonic()

    def set_disconnect(self) -> None:
        self._connected = False

    def get_connection_status(self) -> ChannelStatus:
        if not self._writer.transport_alive() or not self._connected:
            return ChannelStatus.DISCONNECTED

        idle = time.monotonic() - self._last_activity_at
        if idle > 3 * self.ping_interval_s:
            self._connected = False
            return ChannelStatus.DISCONNECTED
        if idle > self.ping_interval_s:
            return ChannelStatus.NEEDS_PING
        return ChannelStatus.CONNECTED

    def write_msg(self, namespace: str, payload: str) -> CommandResult:
        return self._writer.write(self._destination_id, namespace, payload)

    def __repr__(self) -> str:
        return f"VirtualChannel(name={self.name!r}, destination_id={self._destination_id!r})"

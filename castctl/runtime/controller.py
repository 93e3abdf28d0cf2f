# castctl/runtime/controller.py
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Optional

from castctl.app.config import CastConfig
from castctl.protocol.channel import ChannelStatus, FrameWriter, VirtualChannel
from castctl.protocol.core import messages
from castctl.protocol.core.decoder import FieldCursor, render_frame
from castctl.protocol.core.defs import (
    FRAME_HEADER_SIZE,
    NS_CONNECTION,
    NS_HEARTBEAT,
    NS_MEDIA,
    NS_RECEIVER,
    RECEIVER_ID,
    TAG_NAMESPACE,
    TAG_PAYLOAD_UTF8,
    TAG_SOURCE_ID,
    WireType,
)
from castctl.protocol.core.reader import FrameReader
from castctl.protocol.errors import DecodeError
from castctl.protocol.results import CommandResult
from castctl.protocol._internal.request_state import LinkDead, RequestTracker
from castctl.runtime.interpreter import StatusInterpreter
from castctl.runtime.state import CastStatus, ConnectionStatus, PlayerState, StatusSnapshot
from castctl.transport.base import Transport
from castctl.transport.errors import TransportIOError, TransportOpenError
from castctl.transport.tls import TLSTransport


class _Route(Enum):
    DEVICE = "device"
    APPLICATION = "application"


class CastController:
    """
    Poll-driven control session with a cast receiver.

    Owns the transport, the device and application channels and the cached
    status. All work happens inside loop() and the command methods; nothing
    runs in the background and the object is not thread-safe.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        *,
        config: Optional[CastConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or CastConfig()
        self._log = logger or logging.getLogger(__name__)

        self.transport = transport or TLSTransport(connect_timeout=self.config.connect_timeout_s, logger=self._log)

        self._reader = FrameReader(
            self.transport,
            capacity=self.config.frame_buffer_size,
            timeout_s=self.config.read_timeout_s,
            logger=self._log,
        )
        self._writer = FrameWriter(self.transport, capacity=self.config.frame_buffer_size, logger=self._log)

        self.device = VirtualChannel(self._writer, ping_interval_s=self.config.ping_interval_s, name="device")
        self.application = VirtualChannel(
            self._writer, ping_interval_s=self.config.ping_interval_s, name="application"
        )

        self._status = CastStatus()
        self._interpreter = StatusInterpreter(
            self._status,
            max_payload_bytes=self.config.json_buffer_size,
            logger=self._log,
        )
        self._requests = RequestTracker(budget=self.config.error_budget, window_s=self.config.response_window_s)
        self._connection = ConnectionStatus.DISCONNECTED

    # ---------------- Connection ----------------
    def connect(self, host: str, port: Optional[int] = None) -> CommandResult:
        port = self.config.port if port is None else int(port)
        try:
            self.transport.connect(host, port)
        except TransportOpenError as e:
            self._log.warning("TRANSPORT_OPEN_FAILED host=%s port=%d err=%s", host, port, e)
            self._connection = ConnectionStatus.DISCONNECTED
            return CommandResult.TRANSPORT_OPEN_FAILURE

        self._log.info("TRANSPORT_OPEN host=%s port=%d", host, port)
        self._connection = ConnectionStatus.TRANSPORT_ALIVE
        self._requests.reset()

        result = self.device.connect(RECEIVER_ID)
        if result.ok:
            self._connection = ConnectionStatus.CONNECTED
        else:
            self._log.warning("DEVICE_HANDSHAKE_FAILED result=%s", result.name)
        return result

    def close(self) -> None:
        self._teardown("closed by caller")

    def _teardown(self, reason: str) -> None:
        if self._connection is not ConnectionStatus.DISCONNECTED:
            self._log.info("DISCONNECTED reason=%s", reason)
        try:
            self.transport.close()
        except TransportIOError:
            self._log.exception("TRANSPORT_CLOSE_FAILED")
        self.device.set_disconnect()
        self.application.set_disconnect()
        self._requests.reset()
        self._connection = ConnectionStatus.DISCONNECTED

    def get_connection(self) -> ConnectionStatus:
        if self._requests.outstanding:
            return ConnectionStatus.WAITING_FOR_RESPONSE
        if self.application.get_connection_status() is not ChannelStatus.DISCONNECTED:
            return ConnectionStatus.APPLICATION_RUNNING
        return self._connection

    def status(self, *, max_text_len: Optional[int] = None) -> StatusSnapshot:
        return StatusSnapshot.of(
            self._status,
            self.get_connection(),
            application_active=self.application.get_connection_status() is not ChannelStatus.DISCONNECTED,
            max_text_len=max_text_len,
        )

    @property
    def session_id(self) -> str:
        return self._status.session_id

    @property
    def media_session_id(self) -> int:
        return self._status.media_session_id

    # ---------------- Poll cycle ----------------
    def loop(self) -> ConnectionStatus:
        if not self.transport.connected():
            self._teardown("transport not connected")
            return ConnectionStatus.DISCONNECTED

        try:
            received = self._drain()
        except TransportIOError as e:
            self._log.warning("RX_FAILED err=%s", e)
            self._teardown("read failed")
            return ConnectionStatus.DISCONNECTED

        if not received and not self._send_next():
            return ConnectionStatus.DISCONNECTED

        return self.get_connection()

    def _drain(self) -> bool:
        received = False
        while True:
            frame = self._reader.read_frame()
            if not frame:
                return received
            received = True
            self._requests.response_received()
            if self._log.isEnabledFor(logging.DEBUG):
                self._log.debug("RX len=%d raw=%s", len(frame), render_frame(frame[FRAME_HEADER_SIZE:]))
            self._dispatch(frame)

    def _dispatch(self, frame: bytes) -> None:
        route: Optional[_Route] = None
        namespace = ""

        try:
            for field in FieldCursor(frame, start=FRAME_HEADER_SIZE):
                if field.wire_type != WireType.LENGTH_DELIMITED:
                    continue

                if field.tag == TAG_SOURCE_ID:
                    route = self._route_source(field.text)

                elif field.tag == TAG_NAMESPACE:
                    namespace = field.text
                    if namespace == NS_HEARTBEAT:
                        route = None
                    elif namespace == NS_CONNECTION:
                        self._on_close_notice(route)
                        route = None

                elif field.tag == TAG_PAYLOAD_UTF8 and route is not None:
                    self._interpret(route, namespace, field.data)
        except DecodeError as e:
            self._log.warning("FRAME_SCAN_HALTED len=%d err=%s", len(frame), e)

    def _route_source(self, source_id: str) -> Optional[_Route]:
        route = None
        if source_id == self.device.destination_id:
            self.device.pinged()
            route = _Route.DEVICE
        if (
            self.application.get_connection_status() is not ChannelStatus.DISCONNECTED
            and source_id == self.application.destination_id
        ):
            self.application.pinged()
            route = _Route.APPLICATION
        return route

    def _on_close_notice(self, route: Optional[_Route]) -> None:
        if route is _Route.DEVICE:
            self._log.info("CLOSE_NOTICE channel=device")
            self.application.set_disconnect()
            self.device.set_disconnect()
            self._connection = ConnectionStatus.TRANSPORT_ALIVE
        elif route is _Route.APPLICATION:
            self._log.info("CLOSE_NOTICE channel=application")
            self.application.set_disconnect()

    def _interpret(self, route: _Route, namespace: str, payload: bytes) -> None:
        if route is _Route.DEVICE and namespace == NS_RECEIVER:
            session_id = self._interpreter.apply_receiver_status(payload)
            if session_id is not None:
                self._on_session(session_id)
        elif route is _Route.APPLICATION and namespace == NS_MEDIA:
            self._interpreter.apply_media_status(payload)

    def _on_session(self, session_id: str) -> None:
        if session_id:
            app_up = self.application.get_connection_status() is not ChannelStatus.DISCONNECTED
            if not app_up or self.application.destination_id != session_id:
                self._log.info("APPLICATION_FOUND session=%s", session_id)
                self._connection = ConnectionStatus.CONNECT_TO_APPLICATION
        elif self._connection is ConnectionStatus.CONNECT_TO_APPLICATION:
            self._connection = ConnectionStatus.CONNECTED

    def _send_next(self) -> bool:
        """Send at most one message. Returns False if the link was declared dead."""
        now = time.monotonic()
        was_outstanding = self._requests.outstanding
        state = self._requests.acquire_send_slot(now)

        if isinstance(state, LinkDead):
            self._log.warning("LINK_DEAD budget=%d", self._requests.budget)
            self._teardown("no response")
            return False
        if self._requests.outstanding:
            return True
        if was_outstanding:
            self._log.info("RESPONSE_TIMEOUT attempts_remaining=%d", self._requests.attempts_remaining)

        if self._connection is ConnectionStatus.CONNECT_TO_APPLICATION:
            result = self.application.connect(self._status.session_id)
            if result.ok:
                self._connection = ConnectionStatus.CONNECTED
            else:
                self._log.warning("APPLICATION_HANDSHAKE_FAILED result=%s", result.name)
            return True

        if self.application.get_connection_status() is ChannelStatus.DISCONNECTED:
            result = self.device.write_msg(NS_RECEIVER, messages.get_status())
        elif self.device.get_connection_status() is ChannelStatus.NEEDS_PING:
            result = self.device.write_msg(NS_HEARTBEAT, messages.ping())
        elif self.application.get_connection_status() is ChannelStatus.CONNECTED:
            result = self.application.write_msg(NS_MEDIA, messages.get_status())
        elif self.application.get_connection_status() is ChannelStatus.NEEDS_PING:
            result = self.application.write_msg(NS_HEARTBEAT, messages.ping())
        else:
            return True

        if result.ok:
            self._requests.sent(now)
        else:
            self._log.warning("SEND_FAILED result=%s", result.name)
        return True

    # ---------------- Commands ----------------
    def _check_ready(self, cmd: str, *, media: bool) -> CommandResult:
        if self._requests.outstanding:
            self._log.debug("CMD_REJECTED cmd=%s reason=busy", cmd)
            return CommandResult.BUSY
        if media and self._status.media_session_id < 0:
            self._log.debug("CMD_REJECTED cmd=%s reason=no_media", cmd)
            return CommandResult.NO_ACTIVE_MEDIA
        return CommandResult.OK

    def _media(self, command: str) -> CommandResult:
        check = self._check_ready(command, media=True)
        if not check.ok:
            return check
        return self.application.write_msg(NS_MEDIA, messages.media_command(command, self._status.media_session_id))

    def play(self) -> CommandResult:
        return self._media(messages.PLAY)

    def pause(self, toggle: bool = False) -> CommandResult:
        check = self._check_ready(messages.PAUSE, media=True)
        if not check.ok:
            return check
        if toggle and self._status.player_state is PlayerState.PAUSED:
            return self.play()
        return self._media(messages.PAUSE)

    def prev(self) -> CommandResult:
        return self._media(messages.QUEUE_PREV)

    def next(self) -> CommandResult:
        return self._media(messages.QUEUE_NEXT)

    def seek(self, relative: bool, value: float) -> CommandResult:
        check = self._check_ready("SEEK", media=True)
        if not check.ok:
            return check

        target = float(value)
        if relative:
            target += self._status.current_time
        target = min(max(target, 0.0), self._status.duration)

        payload = messages.seek(self._status.media_session_id, target)
        return self.application.write_msg(NS_MEDIA, payload)

    def set_volume(self, relative: bool, value: float) -> CommandResult:
        check = self._check_ready("SET_VOLUME", media=False)
        if not check.ok:
            return check

        target = float(value)
        if relative:
            target += self._status.volume
        target = min(max(target, 0.0), 1.0)

        return self.device.write_msg(NS_RECEIVER, messages.set_volume(target))

    def set_mute(self, mute: bool, toggle: bool = False) -> CommandResult:
        check = self._check_ready("SET_MUTE", media=False)
        if not check.ok:
            return check

        if toggle:
            mute = not self._status.is_muted
        return self.device.write_msg(NS_RECEIVER, messages.set_mute(mute))

    def __enter__(self) -> "CastController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

from __future__ import annotations

import json

import pytest

import castctl.runtime.controller as ctrl_mod
from castctl.app.config import CastConfig
from castctl.cli.commands import format_status
from castctl.protocol.core.defs import NS_CONNECTION, NS_HEARTBEAT, NS_MEDIA, NS_RECEIVER
from castctl.protocol.core.envelope import CastMessage, encode_envelope, frame
from castctl.protocol.results import CommandResult
from castctl.runtime.controller import CastController
from castctl.runtime.state import ConnectionStatus, PlayerState
from castctl.transport.base import Transport
from castctl.transport.errors import TransportIOError, TransportOpenError


class FakeTransport(Transport):
    """In-memory transport: feed() queues inbound frames, writes are recorded."""

    def __init__(self):
        self.rx = bytearray()
        self.writes: list[bytes] = []
        self.is_connected = False
        self.fail_open = False
        self.fail_read = False
        self.closed = 0

    def connect(self, host: str, port: int) -> None:
        if self.fail_open:
            raise TransportOpenError("refused")
        self.host, self.port = host, port
        self.is_connected = True

    def connected(self) -> bool:
        return self.is_connected

    def available(self) -> int:
        if self.fail_read:
            raise TransportIOError("reset by peer")
        return len(self.rx)

    def peek(self, n: int) -> bytes:
        return bytes(self.rx[:n])

    def read(self, n: int) -> bytes:
        out = bytes(self.rx[:n])
        del self.rx[:n]
        return out

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        return len(data)

    def close(self) -> None:
        self.is_connected = False
        self.closed += 1

    def feed(self, source: str, namespace: str, payload: dict | str) -> None:
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        self.rx.extend(frame(encode_envelope(source, "sender-0", namespace, payload)))

    def sent(self, index: int = -1):
        msg = CastMessage.FromString(self.writes[index][4:])
        return msg.destination_id, msg.namespace, json.loads(msg.payload_utf8)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch):
    c = FakeClock(100.0)
    # channels, reader and controller all read the same time module
    monkeypatch.setattr(ctrl_mod.time, "monotonic", c)
    return c


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def ctrl(transport, clock):
    c = CastController(transport, config=CastConfig())
    assert c.connect("10.0.0.5") is CommandResult.OK
    return c


def receiver_status(session_id: str | None = "abc", level: float = 0.5, muted: bool = False) -> dict:
    status: dict = {"volume": {"level": level, "muted": muted}}
    if session_id is not None:
        status["applications"] = [{"sessionId": session_id, "displayName": "Player", "statusText": "Casting"}]
    return {"type": "RECEIVER_STATUS", "requestId": 1, "status": status}


def media_status(msid: int = 7, state: str = "PLAYING", current: float = 10.0, duration: float = 100.0) -> dict:
    return {
        "type": "MEDIA_STATUS",
        "requestId": 1,
        "status": [
            {
                "mediaSessionId": msid,
                "playerState": state,
                "currentTime": current,
                "media": {"duration": duration, "metadata": {"title": "Song", "artist": "Band"}},
            }
        ],
    }


def bring_up_application(ctrl: CastController, transport: FakeTransport, **media) -> None:
    assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE
    transport.feed("receiver-0", NS_RECEIVER, receiver_status("abc"))
    assert ctrl.loop() is ConnectionStatus.CONNECT_TO_APPLICATION
    assert ctrl.loop() is ConnectionStatus.APPLICATION_RUNNING
    assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE
    transport.feed("abc", NS_MEDIA, media_status(**media))
    assert ctrl.loop() is ConnectionStatus.APPLICATION_RUNNING


# ---------------- Connection ----------------

def test_connect_sends_device_connect(transport, ctrl):
    assert transport.port == 8009
    assert transport.sent(0) == ("receiver-0", NS_CONNECTION, {"type": "CONNECT"})
    assert ctrl.get_connection() is ConnectionStatus.CONNECTED


def test_connect_open_failure(transport, clock):
    transport.fail_open = True
    c = CastController(transport)
    assert c.connect("10.0.0.5", 1234) is CommandResult.TRANSPORT_OPEN_FAILURE
    assert c.get_connection() is ConnectionStatus.DISCONNECTED
    assert transport.writes == []


def test_close_disconnects(transport, ctrl):
    ctrl.close()
    assert transport.closed >= 1
    assert ctrl.get_connection() is ConnectionStatus.DISCONNECTED
    assert ctrl.loop() is ConnectionStatus.DISCONNECTED


def test_context_manager_closes(transport, clock):
    with CastController(transport) as c:
        c.connect("10.0.0.5")
    assert not transport.is_connected


# ---------------- Poll cycle ----------------

def test_status_poll_to_running_application(transport, ctrl):
    bring_up_application(ctrl, transport)

    # device GET_STATUS, app CONNECT, media GET_STATUS after the device CONNECT
    assert transport.sent(1) == ("receiver-0", NS_RECEIVER, {"type": "GET_STATUS", "requestId": 1})
    assert transport.sent(2) == ("abc", NS_CONNECTION, {"type": "CONNECT"})
    assert transport.sent(3) == ("abc", NS_MEDIA, {"type": "GET_STATUS", "requestId": 1})

    st = ctrl.status()
    assert st.connection is ConnectionStatus.APPLICATION_RUNNING
    assert st.volume == 0.5
    assert st.display_name == "Player"
    assert st.player_state is PlayerState.PLAYING
    assert (st.current_time, st.duration) == (10.0, 100.0)
    assert (st.title, st.artist) == ("Song", "Band")
    assert ctrl.session_id == "abc"
    assert ctrl.media_session_id == 7


def test_status_text_is_clipped(transport, ctrl):
    bring_up_application(ctrl, transport)
    st = ctrl.status(max_text_len=2)
    assert (st.display_name, st.status_text, st.title, st.artist) == ("Pl", "Ca", "So", "Ba")


def test_status_reports_application_while_media_request_outstanding(transport, ctrl, clock):
    bring_up_application(ctrl, transport)

    clock.now += 0.05
    assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE

    st = ctrl.status()
    assert st.connection is ConnectionStatus.WAITING_FOR_RESPONSE
    assert st.application_active is True
    lines = format_status(st)
    assert "D:Player" in lines
    assert "S:1 100.000000/10.000000" in lines


def test_status_application_inactive_before_app_connect(transport, ctrl):
    assert ctrl.status().application_active is False
    assert format_status(ctrl.status()) == ["V:-1.000000 "]


def test_one_send_per_cycle_while_waiting(transport, ctrl, clock):
    ctrl.loop()
    n = len(transport.writes)

    clock.now += 0.2
    assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE
    assert len(transport.writes) == n


def test_dead_link_after_budget(transport, ctrl, clock):
    assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE

    for _ in range(4):
        clock.now += 0.6
        assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE

    clock.now += 0.6
    assert ctrl.loop() is ConnectionStatus.DISCONNECTED
    assert not transport.is_connected

    # device CONNECT plus five GET_STATUS attempts
    assert len(transport.writes) == 6


def test_any_inbound_frame_refills_budget(transport, ctrl, clock):
    ctrl.loop()
    for _ in range(3):
        clock.now += 0.6
        ctrl.loop()

    transport.feed("receiver-0", NS_HEARTBEAT, {"type": "PONG"})
    assert ctrl.loop() is ConnectionStatus.CONNECTED

    for _ in range(5):
        clock.now += 0.6
        assert ctrl.loop() is ConnectionStatus.WAITING_FOR_RESPONSE


def test_device_keepalive_ping(transport, ctrl, clock):
    bring_up_application(ctrl, transport)

    clock.now += 5.5
    ctrl.loop()
    assert transport.sent() == ("receiver-0", NS_HEARTBEAT, {"type": "PING"})


def test_application_keepalive_ping(transport, ctrl, clock):
    bring_up_application(ctrl, transport)

    # keep the device fresh so the application channel gets the slot
    clock.now += 5.5
    transport.feed("receiver-0", NS_HEARTBEAT, {"type": "PONG"})
    ctrl.loop()
    ctrl.loop()
    assert transport.sent() == ("abc", NS_HEARTBEAT, {"type": "PING"})


def test_receiver_namespace_from_application_is_ignored(transport, ctrl):
    bring_up_application(ctrl, transport)

    transport.feed("abc", NS_RECEIVER, receiver_status("abc", level=0.9))
    ctrl.loop()
    assert ctrl.status().volume == 0.5


def test_media_namespace_from_device_is_ignored(transport, ctrl):
    bring_up_application(ctrl, transport)

    transport.feed("receiver-0", NS_MEDIA, media_status(msid=99, current=50.0))
    ctrl.loop()
    assert ctrl.media_session_id == 7
    assert ctrl.status().current_time == 10.0


def test_unknown_source_is_ignored(transport, ctrl):
    transport.feed("somebody", NS_RECEIVER, receiver_status("zzz", level=0.1))
    ctrl.loop()
    assert ctrl.session_id == ""
    assert ctrl.status().volume == -1.0


def test_application_close_notice(transport, ctrl):
    bring_up_application(ctrl, transport)

    transport.feed("abc", NS_CONNECTION, {"type": "CLOSE"})
    assert ctrl.loop() is ConnectionStatus.CONNECTED


def test_device_close_notice(transport, ctrl):
    bring_up_application(ctrl, transport)

    transport.feed("receiver-0", NS_CONNECTION, {"type": "CLOSE"})
    assert ctrl.loop() is ConnectionStatus.TRANSPORT_ALIVE


def test_session_cleared_before_app_connect(transport, ctrl):
    ctrl.loop()
    transport.feed("receiver-0", NS_RECEIVER, receiver_status("abc"))
    assert ctrl.loop() is ConnectionStatus.CONNECT_TO_APPLICATION

    transport.feed("receiver-0", NS_RECEIVER, receiver_status(None))
    assert ctrl.loop() is ConnectionStatus.CONNECTED


def test_same_session_does_not_reconnect(transport, ctrl):
    bring_up_application(ctrl, transport)
    n = len(transport.writes)

    transport.feed("receiver-0", NS_RECEIVER, receiver_status("abc"))
    assert ctrl.loop() is ConnectionStatus.APPLICATION_RUNNING
    assert len(transport.writes) == n


def test_new_session_reconnects_application(transport, ctrl):
    bring_up_application(ctrl, transport)

    transport.feed("receiver-0", NS_RECEIVER, receiver_status("def"))
    ctrl.loop()
    ctrl.loop()
    assert transport.sent() == ("def", NS_CONNECTION, {"type": "CONNECT"})
    assert ctrl.application.destination_id == "def"


def test_truncated_frame_does_not_desync_stream(transport, clock):
    c = CastController(transport, config=CastConfig(frame_buffer_size=100))
    c.connect("10.0.0.5")

    big = receiver_status("abc")
    big["status"]["applications"][0]["statusText"] = "x" * 200
    transport.feed("receiver-0", NS_RECEIVER, big)
    transport.feed("receiver-0", NS_CONNECTION, {"type": "CLOSE"})

    assert c.loop() is ConnectionStatus.TRANSPORT_ALIVE
    assert c.status().volume == -1.0
    assert transport.rx == bytearray()


def test_read_error_tears_down(transport, ctrl):
    transport.fail_read = True
    assert ctrl.loop() is ConnectionStatus.DISCONNECTED
    assert transport.closed >= 1


def test_transport_lost_tears_down(transport, ctrl):
    transport.is_connected = False
    assert ctrl.loop() is ConnectionStatus.DISCONNECTED
    assert ctrl.get_connection() is ConnectionStatus.DISCONNECTED


# ---------------- Commands ----------------

def test_commands_rejected_while_waiting(transport, ctrl):
    ctrl.loop()
    assert ctrl.play() is CommandResult.BUSY
    assert ctrl.set_volume(False, 0.3) is CommandResult.BUSY


def test_media_commands_need_media_session(transport, ctrl):
    assert ctrl.play() is CommandResult.NO_ACTIVE_MEDIA
    assert ctrl.seek(False, 1.0) is CommandResult.NO_ACTIVE_MEDIA


def test_play_next_prev(transport, ctrl):
    bring_up_application(ctrl, transport)

    assert ctrl.play() is CommandResult.OK
    assert transport.sent() == ("abc", NS_MEDIA, {"type": "PLAY", "requestId": 2, "mediaSessionId": 7})
    assert ctrl.next() is CommandResult.OK
    assert transport.sent()[2]["type"] == "QUEUE_NEXT"
    assert ctrl.prev() is CommandResult.OK
    assert transport.sent()[2]["type"] == "QUEUE_PREV"


def test_pause_toggle(transport, ctrl):
    bring_up_application(ctrl, transport, state="PAUSED")

    assert ctrl.pause(toggle=True) is CommandResult.OK
    assert transport.sent()[2]["type"] == "PLAY"

    assert ctrl.pause() is CommandResult.OK
    assert transport.sent()[2]["type"] == "PAUSE"


@pytest.mark.parametrize("state", ["IDLE", "PLAYING", "BUFFERING"])
def test_pause_toggle_pauses_unless_paused(transport, ctrl, state):
    bring_up_application(ctrl, transport, state=state)
    assert ctrl.pause(toggle=True) is CommandResult.OK
    assert transport.sent()[2]["type"] == "PAUSE"


@pytest.mark.parametrize(
    "relative,value,expected",
    [
        (False, 42.0, 42.0),
        (True, 5.0, 15.0),
        (False, -3.0, 0.0),
        (True, 500.0, 100.0),
    ],
)
def test_seek_clamps_to_duration(transport, ctrl, relative, value, expected):
    bring_up_application(ctrl, transport)

    assert ctrl.seek(relative, value) is CommandResult.OK
    dest, ns, doc = transport.sent()
    assert (dest, ns) == ("abc", NS_MEDIA)
    assert doc == {"type": "SEEK", "requestId": 2, "mediaSessionId": 7, "currentTime": expected}


@pytest.mark.parametrize(
    "relative,value,expected",
    [
        (False, 0.42, 0.42),
        (True, 0.1, 0.6),
        (True, 2.0, 1.0),
        (False, -1.0, 0.0),
    ],
)
def test_set_volume_clamps(transport, ctrl, relative, value, expected):
    bring_up_application(ctrl, transport)

    assert ctrl.set_volume(relative, value) is CommandResult.OK
    dest, ns, doc = transport.sent()
    assert (dest, ns) == ("receiver-0", NS_RECEIVER)
    assert doc["type"] == "SET_VOLUME"
    assert doc["volume"]["level"] == pytest.approx(expected)


def test_set_mute_and_toggle(transport, ctrl):
    bring_up_application(ctrl, transport)

    assert ctrl.set_mute(True) is CommandResult.OK
    assert transport.sent()[2]["volume"] == {"muted": True}

    # cached state is still unmuted until the receiver reports back
    assert ctrl.set_mute(True, toggle=True) is CommandResult.OK
    assert transport.sent()[2]["volume"] == {"muted": True}


def test_commands_do_not_mark_request_outstanding(transport, ctrl):
    bring_up_application(ctrl, transport)
    ctrl.play()
    assert ctrl.get_connection() is ConnectionStatus.APPLICATION_RUNNING
    assert ctrl.play() is CommandResult.OK

# castctl/cli/commands.py
from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Callable, List

from castctl.core.errors import CommandRejectedError, DeviceConnectError
from castctl.protocol.results import CommandResult
from castctl.runtime.controller import CastController
from castctl.runtime.state import ConnectionStatus, StatusSnapshot

_log = logging.getLogger(__name__)

MEDIA_COMMANDS = ("play", "pause", "next", "prev", "seek")


# ---------------- Logging ----------------

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    lvl = getattr(logging, level, logging.WARNING)
    console = logging.StreamHandler()
    # root level may drop to DEBUG later, see configure_file_logging
    console.setLevel(lvl)
    logging.basicConfig(level=lvl, format=_LOG_FORMAT, handlers=[console])


def configure_file_logging(log_path: Path) -> None:
    """
    Add a DEBUG file handler to the root logger (idempotent).
    Frame dumps only show up here unless --log-level is DEBUG.
    """
    root = logging.getLogger()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    target = str(log_path.resolve())

    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            return

    fh = logging.FileHandler(log_path, encoding="utf-8", delay=True)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(fh)

    if root.level > logging.DEBUG:
        root.setLevel(logging.DEBUG)


# ---------------- Status printing ----------------

def format_status(st: StatusSnapshot) -> List[str]:
    """
    Status dump lines:
      V:<volume><M| >
      D:<displayName>             (only while the application channel is up)
      S:<statusText>
      A/T:<artist>/<title>
      S:<playerState> <duration>/<currentTime>
    """
    if st.connection in (ConnectionStatus.DISCONNECTED, ConnectionStatus.TRANSPORT_ALIVE):
        return []

    lines = [f"V:{st.volume:f}{'M' if st.is_muted else ' '}"]
    if st.application_active:
        lines.append(f"D:{st.display_name}")
        lines.append(f"S:{st.status_text}")
        lines.append(f"A/T:{st.artist}/{st.title}")
        lines.append(f"S:{int(st.player_state)} {st.duration:f}/{st.current_time:f}")
    return lines


def print_status(st: StatusSnapshot) -> None:
    print(f"Connection: {st.connection.value}")
    for line in format_status(st):
        print(line)


# ---------------- Helpers ----------------

def open_session(ctrl: CastController, host: str, port: int | None) -> None:
    result = ctrl.connect(host, port)
    if result is CommandResult.TRANSPORT_OPEN_FAILURE:
        raise DeviceConnectError(
            f"Could not open a TLS connection to {host}.",
            hint="Check the address and that the receiver is on the same network.",
            details={"host": host, "port": port},
        )
    if not result.ok:
        raise DeviceConnectError(
            f"Device handshake failed ({result.name}).",
            details={"host": host, "result": int(result)},
        )


def poll_until(
    ctrl: CastController,
    ready: Callable[[CastController], bool],
    *,
    wait_secs: float,
    poll_s: float,
    what: str,
) -> None:
    deadline = time.monotonic() + wait_secs
    while True:
        conn = ctrl.loop()
        if conn is ConnectionStatus.DISCONNECTED:
            raise DeviceConnectError("Connection to the receiver was lost.", details={"waiting_for": what})
        if conn is not ConnectionStatus.WAITING_FOR_RESPONSE and ready(ctrl):
            return
        if time.monotonic() > deadline:
            raise DeviceConnectError(
                f"Timed out waiting for {what}.",
                hint="Increase --wait-secs or check that something is casting.",
                details={"waiting_for": what, "connection": conn.value},
            )
        time.sleep(poll_s)


def _media_ready(ctrl: CastController) -> bool:
    return ctrl.get_connection() is ConnectionStatus.APPLICATION_RUNNING and ctrl.media_session_id >= 0


def _device_ready(ctrl: CastController) -> bool:
    return ctrl.status().volume >= 0


def _send(ctrl: CastController, args: argparse.Namespace) -> CommandResult:
    if args.cmd == "play":
        return ctrl.play()
    if args.cmd == "pause":
        return ctrl.pause(args.toggle)
    if args.cmd == "next":
        return ctrl.next()
    if args.cmd == "prev":
        return ctrl.prev()
    if args.cmd == "seek":
        return ctrl.seek(args.relative, args.value)
    if args.cmd == "volume":
        return ctrl.set_volume(args.relative, args.value)
    if args.cmd == "mute":
        return ctrl.set_mute(args.mute == "on", toggle=args.mute == "toggle")
    raise ValueError(f"unknown command {args.cmd!r}")


# ---------------- Commands ----------------

def cmd_status(ctrl: CastController, args: argparse.Namespace, *, host: str, port: int | None) -> int:
    poll_s = args.poll_ms / 1000.0
    open_session(ctrl, host, port)

    end = time.monotonic() + args.secs
    next_dump = time.monotonic()
    while time.monotonic() < end:
        if ctrl.loop() is ConnectionStatus.DISCONNECTED:
            raise DeviceConnectError("Connection to the receiver was lost.")
        if time.monotonic() >= next_dump:
            print_status(ctrl.status())
            next_dump += args.every
        time.sleep(poll_s)
    return 0


def cmd_control(ctrl: CastController, args: argparse.Namespace, *, host: str, port: int | None) -> int:
    poll_s = args.poll_ms / 1000.0
    open_session(ctrl, host, port)

    if args.cmd in MEDIA_COMMANDS:
        poll_until(ctrl, _media_ready, wait_secs=args.wait_secs, poll_s=poll_s, what="an active media session")
    else:
        poll_until(ctrl, _device_ready, wait_secs=args.wait_secs, poll_s=poll_s, what="receiver status")

    result = _send(ctrl, args)
    if not result.ok:
        raise CommandRejectedError(
            f"{args.cmd} was not sent ({result.name}).",
            details={"cmd": args.cmd, "result": int(result)},
        )
    _log.info("CMD_SENT cmd=%s", args.cmd)

    # give the receiver a moment to report the new state
    end = time.monotonic() + 0.5
    while time.monotonic() < end:
        ctrl.loop()
        time.sleep(poll_s)
    print_status(ctrl.status())
    return 0

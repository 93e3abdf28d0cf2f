from __future__ import annotations

import logging

import pytest

import castctl.cli.main as main_mod
from castctl.cli.args import parse_args
from castctl.cli.commands import configure_file_logging, format_status
from castctl.protocol.results import CommandResult
from castctl.runtime.state import ConnectionStatus, PlayerState, StatusSnapshot


def _snapshot(connection: ConnectionStatus, application_active: bool = False) -> StatusSnapshot:
    return StatusSnapshot(
        volume=0.5,
        is_muted=True,
        display_name="Player",
        status_text="Casting",
        player_state=PlayerState.PAUSED,
        duration=100.0,
        current_time=12.0,
        title="Song",
        artist="Band",
        connection=connection,
        application_active=application_active,
    )


def test_format_status_disconnected_is_empty():
    assert format_status(_snapshot(ConnectionStatus.DISCONNECTED)) == []
    assert format_status(_snapshot(ConnectionStatus.TRANSPORT_ALIVE)) == []


def test_format_status_device_only():
    assert format_status(_snapshot(ConnectionStatus.CONNECTED)) == ["V:0.500000M"]


def test_format_status_application_running():
    assert format_status(_snapshot(ConnectionStatus.APPLICATION_RUNNING, True)) == [
        "V:0.500000M",
        "D:Player",
        "S:Casting",
        "A/T:Band/Song",
        "S:2 100.000000/12.000000",
    ]


def test_format_status_keeps_application_lines_while_waiting():
    lines = format_status(_snapshot(ConnectionStatus.WAITING_FOR_RESPONSE, True))
    assert lines[0] == "V:0.500000M"
    assert "D:Player" in lines
    assert "A/T:Band/Song" in lines


def test_parse_mute_modes():
    assert parse_args(["--host", "h", "mute", "--toggle"]).mute == "toggle"
    assert parse_args(["--host", "h", "mute", "--on"]).mute == "on"
    with pytest.raises(SystemExit):
        parse_args(["--host", "h", "mute", "--on", "--off"])


def test_parse_log_level_is_case_insensitive():
    assert parse_args(["--log-level", "debug", "play"]).log_level == "DEBUG"


def test_main_without_host_reports_config_error(capsys):
    assert main_mod.main(["play"]) == 1
    out = capsys.readouterr().out
    assert "ERROR: No receiver address given." in out
    assert "Hint:" in out


def test_main_reports_unreachable_receiver(monkeypatch, capsys):
    closed = []

    class FakeController:
        def __init__(self, config=None):
            self.config = config

        def connect(self, host, port=None):
            return CommandResult.TRANSPORT_OPEN_FAILURE

        def close(self):
            closed.append(True)

    monkeypatch.setattr(main_mod, "CastController", FakeController)

    assert main_mod.main(["--host", "10.0.0.5", "status", "--secs", "0"]) == 1
    assert "Could not open a TLS connection to 10.0.0.5." in capsys.readouterr().out
    assert closed == [True]


def test_configure_file_logging_is_idempotent(tmp_path):
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    path = tmp_path / "logs" / "castctl.log"
    try:
        configure_file_logging(path)
        configure_file_logging(path)
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert added[0].level == logging.DEBUG
        assert path.parent.is_dir()
    finally:
        for h in root.handlers[:]:
            if h not in before:
                root.removeHandler(h)
                h.close()
        root.setLevel(level)


def test_main_logs_error_code(caplog):
    with caplog.at_level(logging.INFO, logger="castctl.cli.main"):
        assert main_mod.main(["play"]) == 1
    assert "CLI_ERROR code=config_error" in caplog.text

# castctl/cli/args.py
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="castctl")
    parser.add_argument("--config", default=None, help="YAML config file (see CastConfig for keys).")
    parser.add_argument("--host", default=None, help="Receiver address; overrides 'host' from the config file.")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--log-level", default="WARNING", choices=LOG_LEVELS, type=str.upper)
    parser.add_argument("--log-file", type=Path, default=None, help="Also write a DEBUG log to this file.")
    parser.add_argument(
        "--wait-secs",
        type=float,
        default=10.0,
        help="How long to poll for the needed channel before giving up.",
    )
    parser.add_argument("--poll-ms", type=int, default=100, help="Poll cadence in milliseconds.")

    sub = parser.add_subparsers(dest="cmd", required=True)

    p_status = sub.add_parser("status")
    p_status.add_argument("--secs", type=float, default=5.0, help="How long to keep printing status.")
    p_status.add_argument("--every", type=float, default=1.0, help="Seconds between status dumps.")

    sub.add_parser("play")
    p_pause = sub.add_parser("pause")
    p_pause.add_argument("--toggle", action="store_true", help="Resume instead if already paused.")
    sub.add_parser("next")
    sub.add_parser("prev")

    p_seek = sub.add_parser("seek")
    p_seek.add_argument("value", type=float, help="Seconds (absolute, or offset with --relative).")
    p_seek.add_argument("--relative", action="store_true")

    p_vol = sub.add_parser("volume")
    p_vol.add_argument("value", type=float, help="0..1 (absolute, or offset with --relative).")
    p_vol.add_argument("--relative", action="store_true")

    p_mute = sub.add_parser("mute")
    group = p_mute.add_mutually_exclusive_group(required=True)
    group.add_argument("--on", dest="mute", action="store_const", const="on")
    group.add_argument("--off", dest="mute", action="store_const", const="off")
    group.add_argument("--toggle", dest="mute", action="store_const", const="toggle")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)

# castctl/cli/main.py
from __future__ import annotations

import logging
from typing import Optional

from castctl.app.config import CastConfig, load_config
from castctl.core.errors import CastControlError, ConfigError
from castctl.runtime.controller import CastController

from castctl.cli.args import parse_args
from castctl.cli.commands import cmd_control, cmd_status, configure_file_logging, configure_logging

_log = logging.getLogger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    if args.log_file:
        configure_file_logging(args.log_file)

    ctrl: Optional[CastController] = None
    try:
        cfg = load_config(args.config) if args.config else CastConfig()
        host = args.host or cfg.host
        if not host:
            raise ConfigError("No receiver address given.", hint="Pass --host or set 'host' in the config file.")

        ctrl = CastController(config=cfg)
        if args.cmd == "status":
            return cmd_status(ctrl, args, host=host, port=args.port)
        return cmd_control(ctrl, args, host=host, port=args.port)
    except CastControlError as e:
        _log.info("CLI_ERROR code=%s details=%s", e.code, e.details)
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1
    finally:
        if ctrl is not None:
            ctrl.close()

# castctl/core/errors.py
from __future__ import annotations


class CastControlError(Exception):
    """
    Base class for all expected operational errors in castctl.
    """

    #: Stable machine-readable identifier, logged by the CLI next to details
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors (no network access yet)
# ---------------------------------------------------------------------------

class ConfigError(CastControlError):
    """
    Configuration file or values are invalid.

    Examples:
      - config file missing or not a mapping
      - unknown key
      - value of the wrong type or out of range
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Connection lifecycle errors
# ---------------------------------------------------------------------------

class DeviceConnectError(CastControlError):
    """
    The receiver could not be reached or did not come up in time.

    Examples:
      - TCP/TLS connect refused or timed out
      - device handshake could not be written
      - no application running when a media command was requested
    """
    code = "device_connect_error"


# ---------------------------------------------------------------------------
# Command errors
# ---------------------------------------------------------------------------

class CommandRejectedError(CastControlError):
    """
    A control command was refused locally or could not be written.

    Examples:
      - request still outstanding (busy)
      - no active media session
      - short write on the transport
    """
    code = "command_rejected"

# castctl/protocol/results.py
from __future__ import annotations

from enum import IntEnum


class CommandResult(IntEnum):
    """Result codes returned by channel writes and controller commands."""

    OK = 0
    TRANSPORT_UNAVAILABLE = -1
    ENCODING_FAILURE = -2
    SHORT_WRITE = -3
    NO_ACTIVE_MEDIA = -9
    BUSY = -10
    TRANSPORT_OPEN_FAILURE = -20

    @property
    def ok(self) -> bool:
        return self is CommandResult.OK

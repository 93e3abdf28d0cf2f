# castctl/runtime/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    TRANSPORT_ALIVE = "transport_alive"
    CONNECTED = "connected"
    APPLICATION_RUNNING = "application_running"
    WAITING_FOR_RESPONSE = "waiting_for_response"
    CONNECT_TO_APPLICATION = "connect_to_application"


class PlayerState(IntEnum):
    IDLE = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3

    @classmethod
    def parse(cls, value: object) -> "PlayerState":
        if isinstance(value, str) and value in cls.__members__:
            return cls[value]
        return cls.IDLE


@dataclass
class CastStatus:
    """
    Cached device and media status, updated in place by the interpreter.

    Device fields (volume, is_muted, display_name, status_text, session_id)
    come from receiver status; the rest from media status.
    """
    volume: float = -1.0
    is_muted: bool = False
    display_name: str = ""
    status_text: str = ""
    session_id: str = ""

    media_session_id: int = -1
    player_state: PlayerState = PlayerState.IDLE
    duration: float = 0.0
    current_time: float = 0.0
    title: str = ""
    artist: str = ""


@dataclass(frozen=True)
class StatusSnapshot:
    """
    Read-only view of the cached status plus the connection phase.
    """
    volume: float
    is_muted: bool
    display_name: str
    status_text: str
    player_state: PlayerState
    duration: float
    current_time: float
    title: str
    artist: str
    connection: ConnectionStatus
    # application channel not disconnected, independent of the polled phase
    application_active: bool = False

    @classmethod
    def of(
        cls,
        status: CastStatus,
        connection: ConnectionStatus,
        *,
        application_active: bool = False,
        max_text_len: Optional[int] = None,
    ) -> "StatusSnapshot":
        def clip(s: str) -> str:
            return s if max_text_len is None else s[:max_text_len]

        return cls(
            volume=status.volume,
            is_muted=status.is_muted,
            display_name=clip(status.display_name),
            status_text=clip(status.status_text),
            player_state=status.player_state,
            duration=status.duration,
            current_time=status.current_time,
            title=clip(status.title),
            artist=clip(status.artist),
            connection=connection,
            application_active=application_active,
        )

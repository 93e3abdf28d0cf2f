# castctl/protocol/core/messages.py
"""
JSON payload builders for the commands this client sends.
"""
from __future__ import annotations

import json
from typing import Any, Dict

from .defs import CONTROL_REQUEST_ID, STATUS_REQUEST_ID

# media transport command names
PLAY = "PLAY"
PAUSE = "PAUSE"
QUEUE_NEXT = "QUEUE_NEXT"
QUEUE_PREV = "QUEUE_PREV"


def _dump(doc: Dict[str, Any]) -> str:
    return json.dumps(doc)


def connect() -> str:
    return _dump({"type": "CONNECT"})


def ping() -> str:
    return _dump({"type": "PING"})


def get_status() -> str:
    return _dump({"type": "GET_STATUS", "requestId": STATUS_REQUEST_ID})


def media_command(command: str, media_session_id: int) -> str:
    return _dump({"type": command, "requestId": CONTROL_REQUEST_ID, "mediaSessionId": int(media_session_id)})


def seek(media_session_id: int, current_time: float) -> str:
    return _dump(
        {
            "type": "SEEK",
            "requestId": CONTROL_REQUEST_ID,
            "mediaSessionId": int(media_session_id),
            "currentTime": float(current_time),
        }
    )


def set_volume(level: float) -> str:
    return _dump({"type": "SET_VOLUME", "requestId": CONTROL_REQUEST_ID, "volume": {"level": float(level)}})


def set_mute(muted: bool) -> str:
    return _dump({"type": "SET_VOLUME", "requestId": CONTROL_REQUEST_ID, "volume": {"muted": bool(muted)}})

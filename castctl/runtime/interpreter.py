# castctl/runtime/interpreter.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from castctl.runtime.state import CastStatus, PlayerState


def _as_float(v: Any, default: float) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return default
    return float(v)


def _as_int(v: Any, default: int) -> int:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return default
    return int(v)


def _as_bool(v: Any, default: bool) -> bool:
    return v if isinstance(v, bool) else default


def _as_str(v: Any) -> str:
    return v if isinstance(v, str) else ""


def _first(v: Any) -> Optional[Dict[str, Any]]:
    if isinstance(v, list) and v and isinstance(v[0], dict):
        return v[0]
    return None


class StatusInterpreter:
    """
    Applies RECEIVER_STATUS / MEDIA_STATUS payloads to a CastStatus.

    Every field has a default when its key is missing; malformed JSON is
    logged and ignored.
    """

    RECEIVER_STATUS = "RECEIVER_STATUS"
    MEDIA_STATUS = "MEDIA_STATUS"

    def __init__(
        self,
        status: CastStatus,
        *,
        max_payload_bytes: int = 4096,
        logger: Optional[logging.Logger] = None,
    ):
        self.status = status
        self.max_payload_bytes = int(max_payload_bytes)
        self._log = logger or logging.getLogger(__name__)

    def parse(self, payload: bytes, expected_type: str) -> Optional[Dict[str, Any]]:
        if len(payload) > self.max_payload_bytes:
            self._log.warning("PAYLOAD_TOO_LARGE len=%d max=%d", len(payload), self.max_payload_bytes)
            return None
        try:
            doc = json.loads(payload)
        except ValueError as e:
            self._log.debug("PAYLOAD_JSON_INVALID err=%s", e)
            return None

        if not isinstance(doc, dict) or "type" not in doc or "status" not in doc:
            return None
        if doc["type"] != expected_type:
            return None
        return doc

    def apply_receiver_status(self, payload: bytes) -> Optional[str]:
        """
        Update device fields. Returns the running application's session id
        ("" when none is running), or None if the payload was not a receiver
        status.
        """
        doc = self.parse(payload, self.RECEIVER_STATUS)
        if doc is None:
            return None

        st = self.status
        body = doc["status"] if isinstance(doc["status"], dict) else {}

        volume = body.get("volume")
        if isinstance(volume, dict):
            st.volume = _as_float(volume.get("level"), -1.0)
            st.is_muted = _as_bool(volume.get("muted"), False)
        else:
            st.volume = -1.0
            st.is_muted = False

        if "applications" in body:
            app = _first(body["applications"]) or {}
            st.session_id = _as_str(app.get("sessionId"))
            st.status_text = _as_str(app.get("statusText"))
            st.display_name = _as_str(app.get("displayName"))
        else:
            st.session_id = ""
            st.status_text = ""
            st.display_name = ""

        self._log.debug(
            "RECEIVER_STATUS volume=%.2f muted=%s app=%r session=%r",
            st.volume,
            st.is_muted,
            st.display_name,
            st.session_id,
        )
        return st.session_id

    def apply_media_status(self, payload: bytes) -> bool:
        doc = self.parse(payload, self.MEDIA_STATUS)
        if doc is None:
            return False

        st = self.status
        entry = _first(doc["status"]) or {}

        st.media_session_id = _as_int(entry.get("mediaSessionId"), -1)
        st.current_time = _as_float(entry.get("currentTime"), 0.0)
        st.player_state = PlayerState.parse(entry.get("playerState"))

        # The receiver leaves out "media" while busy; keep what we had.
        media = entry.get("media")
        if isinstance(media, dict):
            st.duration = _as_float(media.get("duration"), 0.0)
            metadata = media.get("metadata")
            if isinstance(metadata, dict):
                st.title = _as_str(metadata.get("title"))
                st.artist = _as_str(metadata.get("artist"))
            else:
                st.title = ""
                st.artist = ""

        self._log.debug(
            "MEDIA_STATUS session=%d state=%s time=%.1f/%.1f title=%r",
            st.media_session_id,
            st.player_state.name,
            st.current_time,
            st.duration,
            st.title,
        )
        return True

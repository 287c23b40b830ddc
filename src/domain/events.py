"""
Push events delivered to live client connections.

Every event is serialized as ``{"type": <kind>, "data": {...}}``.
"""

import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .entities.enums import ForceLogoutReason, PushEventType

DEFAULT_LOGOUT_MESSAGES = {
    ForceLogoutReason.device_logout: "This device was logged out remotely",
    ForceLogoutReason.logout_all_devices: "You were logged out from another device",
    ForceLogoutReason.session_expired: "Your session expired",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


class PushEvent(BaseModel):
    type: PushEventType
    timestamp: int = Field(default_factory=_now_ms)

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"type"}, exclude_none=True)

    def to_message(self) -> Dict[str, Any]:
        return {"type": self.type.value, "data": self.payload()}


class ForceLogoutEvent(PushEvent):
    """
    Instructs a client to drop its local session.

    The server sends it to every connection of the user. Each receiver decides
    whether it applies to itself with ``applies_to``:
    - ``exclude_session_token`` equal to its own session id: ignore
    - ``session_id``/``session_ids`` set and its own id not among them: ignore
    """

    type: PushEventType = PushEventType.force_logout
    reason: ForceLogoutReason
    message: str = ""
    session_id: Optional[str] = None
    session_ids: Optional[List[str]] = None
    exclude_session_token: Optional[str] = None

    def model_post_init(self, __context: Any) -> None:
        if not self.message:
            self.message = DEFAULT_LOGOUT_MESSAGES[self.reason]

    def applies_to(self, own_session_id: Optional[str]) -> bool:
        if self.exclude_session_token is not None and own_session_id == self.exclude_session_token:
            return False
        targets = set(self.session_ids or [])
        if self.session_id is not None:
            targets.add(self.session_id)
        if targets and own_session_id not in targets:
            return False
        return True


class SessionUpdateEvent(PushEvent):
    """Hint that the user's session list is stale"""

    type: PushEventType = PushEventType.session_update


class HeartbeatEvent(PushEvent):
    type: PushEventType = PushEventType.heartbeat

"""
Session Management Use Case DTOs (Data Transfer Objects)
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from src.domain.entities import Session


class SessionInfo(BaseModel):
    """One device session as shown in the session list"""

    id: str
    device_info: Optional[dict] = None
    ip_address: Optional[str] = None
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_current: bool

    @classmethod
    def from_entity(cls, session: Session, current_session_id: str) -> "SessionInfo":
        return cls(
            id=session.id,
            device_info=session.device_info,
            ip_address=session.ip_address,
            created_at=session.created_at,
            last_activity=session.last_activity,
            expires_at=session.expires_at,
            is_current=session.id == current_session_id,
        )


class SessionListResponse(BaseModel):
    sessions: List[SessionInfo]


class DeleteSessionResponse(BaseModel):
    session_id: str
    deleted: bool


class DeleteOtherSessionsResponse(BaseModel):
    deleted_count: int
    kept_session_id: str


class SessionStatusResponse(BaseModel):
    session_id: str
    last_activity: datetime
    expires_at: datetime
    is_expired: bool
    time_remaining_ms: int
    timeout_ms: int

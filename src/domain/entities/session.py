"""
Session Entity

One logical login per device, with its own sliding inactivity deadline.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlmodel import Column, DateTime, Field, Index, JSON, SQLModel

from src.domain.base import generate_session_id, utcnow


class Session(SQLModel, table=True):
    """
    Session entity - per-device login record.

    Business Rules:
    - id is the sessionId embedded in every access token issued for the device
    - At most MAX_SESSIONS_PER_USER rows per user; the oldest is evicted
    - expires_at slides forward on activity, capped by the absolute lifetime
    - Logically expired once now > expires_at, whether or not the row exists
    """

    __tablename__ = "sessions"

    id: str = Field(default_factory=generate_session_id, primary_key=True, max_length=64)
    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)

    device_info: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    ip_address: Optional[str] = Field(default=None, max_length=64)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    last_activity: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    expires_at: datetime = Field(sa_column=Column(DateTime))

    __table_args__ = (
        Index("idx_session_expires_at", "expires_at"),
        Index("idx_session_user_created", "user_id", "created_at"),
    )

    def is_expired_at(self, now: datetime) -> bool:
        return now > self.expires_at

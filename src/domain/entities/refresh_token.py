"""
RefreshToken Entity

Long-lived, one-time-use credential exchanged for a new token pair.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, Index, SQLModel

from src.domain.base import utcnow


class RefreshToken(SQLModel, table=True):
    """
    RefreshToken entity - stored as a SHA-256 hash, never in plain text.

    Business Rules:
    - Rotated on every successful refresh (old row revoked, new row inserted)
    - Bound to the session it was issued for; rotation keeps the session_id
    - Revoked when its session is deleted or on logout
    """

    __tablename__ = "refresh_tokens"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    session_id: str = Field(nullable=False, index=True, max_length=64)

    token_hash: str = Field(unique=True, index=True, max_length=64)  # SHA-256 hex
    revoked_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    expires_at: datetime = Field(sa_column=Column(DateTime))

    __table_args__ = (Index("idx_refresh_token_expires_at", "expires_at"),)

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None

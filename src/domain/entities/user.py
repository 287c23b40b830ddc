"""
User Entity

Credential record consulted for identity and role.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Column, DateTime, Field, SQLModel

from src.domain.base import utcnow
from .enums import Role


class User(SQLModel, table=True):
    """
    User entity - owner of sessions and refresh tokens.

    Business Rules:
    - Email must be unique across all users
    - Password stored as bcrypt hash
    - Only id, email and role are read by the session core
    """

    __tablename__ = "users"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    password_hash: str = Field(max_length=60)  # Bcrypt output is 60 chars

    role: Role = Field(default=Role.STARTER)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime))
    last_login_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))

"""
Authentication Use Case DTOs (Data Transfer Objects)

All Command and Response classes for auth domain.
Provides type safety and clear contracts between layers.
"""

from typing import Optional
from pydantic import BaseModel

from src.domain.device import DeviceInfo
from src.domain.entities import User


# ============================================================================
# Command DTOs
# ============================================================================


class LoginCommand(BaseModel):
    """Validated login intent plus the device it comes from"""

    email: str
    password: str
    device_info: Optional[DeviceInfo] = None
    ip_address: Optional[str] = None


# ============================================================================
# Response DTOs
# ============================================================================


class UserInfo(BaseModel):
    """User information in authentication responses"""

    id: str
    email: str
    name: Optional[str] = None
    role: str

    @classmethod
    def from_entity(cls, user: User) -> "UserInfo":
        return cls(id=str(user.id), email=user.email, name=user.name, role=user.role.value)


class AuthResponse(BaseModel):
    """Response for signup and login use cases"""

    user: UserInfo
    access_token: str
    refresh_token: str
    session_id: str


class RefreshTokenResponse(BaseModel):
    """Response for refresh token use case"""

    access_token: str
    refresh_token: str
    session_id: str


class LogoutResponse(BaseModel):
    """Response for logout use case"""

    message: str
    session_deleted: bool

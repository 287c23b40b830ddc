"""
Signup Use Case DTOs (Data Transfer Objects)

Command/Response pattern for clean architecture separation:
- SignupCommand: Input to use case (validated business intent)
- AuthResponse: Output from use case (shared with login)
"""

from typing import Optional
from pydantic import BaseModel

from src.domain.device import DeviceInfo
from src.domain.entities import Role


class SignupCommand(BaseModel):
    """
    Signup command - represents validated signup intent

    Created by API layer after request validation passes.
    Contains only business-relevant data (no HTTP concerns).
    """

    email: str
    password: str
    name: Optional[str] = None
    role: Role = Role.STARTER
    device_info: Optional[DeviceInfo] = None
    ip_address: Optional[str] = None

"""
Authentication Use Cases

All authentication-related business logic.
"""

from .signup_use_case import SignupUseCase
from .signup_dto import SignupCommand
from .login_use_case import LoginUseCase
from .refresh_token_use_case import RefreshTokenUseCase
from .logout_use_case import LogoutUseCase
from .dtos import (
    AuthResponse,
    LoginCommand,
    LogoutResponse,
    RefreshTokenResponse,
    UserInfo,
)

__all__ = [
    # Use Cases
    "SignupUseCase",
    "LoginUseCase",
    "RefreshTokenUseCase",
    "LogoutUseCase",
    # DTOs - Commands
    "SignupCommand",
    "LoginCommand",
    # DTOs - Responses
    "AuthResponse",
    "LogoutResponse",
    "RefreshTokenResponse",
    # DTOs - Nested Models
    "UserInfo",
]

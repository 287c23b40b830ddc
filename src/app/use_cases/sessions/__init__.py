"""
Session Management Use Cases

Listing and remote logout of a user's device sessions.
"""

from .list_sessions_use_case import ListSessionsUseCase
from .delete_session_use_case import DeleteSessionUseCase
from .delete_other_sessions_use_case import DeleteOtherSessionsUseCase
from .session_status_use_case import SessionStatusUseCase
from .notifications import notify_session_created
from .dtos import (
    DeleteOtherSessionsResponse,
    DeleteSessionResponse,
    SessionInfo,
    SessionListResponse,
    SessionStatusResponse,
)

__all__ = [
    # Use Cases
    "ListSessionsUseCase",
    "DeleteSessionUseCase",
    "DeleteOtherSessionsUseCase",
    "SessionStatusUseCase",
    "notify_session_created",
    # DTOs
    "DeleteOtherSessionsResponse",
    "DeleteSessionResponse",
    "SessionInfo",
    "SessionListResponse",
    "SessionStatusResponse",
]

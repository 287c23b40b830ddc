from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.domain.entities import RefreshToken


class IRefreshTokenRepository(ABC):
    """Refresh token repository interface - application layer"""

    @abstractmethod
    async def create(self, token: RefreshToken) -> RefreshToken:
        """Store a new refresh token row"""
        pass

    @abstractmethod
    async def get_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        """Find a refresh token by its SHA-256 hash"""
        pass

    @abstractmethod
    async def revoke_if_active(self, token_id: UUID, revoked_at: datetime) -> bool:
        """Revoke a token only if not yet revoked. Returns True if this call revoked it."""
        pass

    @abstractmethod
    async def revoke_by_session_ids(self, session_ids: List[str], revoked_at: datetime) -> int:
        """Revoke all active tokens bound to the given sessions. Returns count."""
        pass

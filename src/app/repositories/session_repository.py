from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.domain.entities import Session


class ISessionRepository(ABC):
    """Session repository interface - application layer"""

    @abstractmethod
    async def get_by_id(self, session_id: str) -> Optional[Session]:
        """Get session by ID"""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: UUID) -> List[Session]:
        """All sessions for a user, oldest first by created_at"""
        pass

    @abstractmethod
    async def create(self, session: Session) -> Session:
        """Create a new session"""
        pass

    @abstractmethod
    async def delete_by_id(
        self, session_id: str, expired_before: Optional[datetime] = None
    ) -> bool:
        """
        Delete one session. With expired_before set, only delete if still expired.
        Returns True if a row was deleted.
        """
        pass

    @abstractmethod
    async def list_expired(self, now: datetime, limit: int) -> List[Session]:
        """Sessions whose expires_at is before now, oldest deadline first"""
        pass

    @abstractmethod
    async def update_activity(
        self, session_id: str, last_activity: datetime, expires_at: datetime
    ) -> bool:
        """
        Slide the deadline of a session that still exists and is not yet expired
        at last_activity. Returns False if no row qualified.
        """
        pass

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.repositories.session_repository import ISessionRepository
from src.domain.entities import Session


class SessionRepository(ISessionRepository):
    """Session repository implementation using SQLModel"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, session_id: str) -> Optional[Session]:
        """Get session by ID"""
        stmt = (
            select(Session)
            .where(Session.id == session_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.exec(stmt)
        return result.one_or_none()

    async def list_by_user(self, user_id: UUID) -> List[Session]:
        """All sessions for a user, oldest first"""
        stmt = (
            select(Session)
            .where(Session.user_id == user_id)
            .order_by(Session.created_at.asc(), Session.id.asc())
        )
        result = await self.session.exec(stmt)
        return list(result.all())

    async def create(self, session_obj: Session) -> Session:
        """Create a new session"""
        self.session.add(session_obj)
        await self.session.flush()
        await self.session.refresh(session_obj)
        return session_obj

    async def delete_by_id(
        self, session_id: str, expired_before: Optional[datetime] = None
    ) -> bool:
        """Delete one session, optionally only if it is still past its deadline"""
        stmt = delete(Session).where(Session.id == session_id)
        if expired_before is not None:
            stmt = stmt.where(Session.expires_at < expired_before)
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0

    async def list_expired(self, now: datetime, limit: int) -> List[Session]:
        """Sessions past their deadline"""
        stmt = (
            select(Session)
            .where(Session.expires_at < now)
            .order_by(Session.expires_at.asc())
            .limit(limit)
        )
        result = await self.session.exec(stmt)
        return list(result.all())

    async def update_activity(
        self, session_id: str, last_activity: datetime, expires_at: datetime
    ) -> bool:
        """Conditional update; a concurrently deleted or expired row matches nothing"""
        stmt = (
            update(Session)
            .where(Session.id == session_id, Session.expires_at >= last_activity)
            .values(last_activity=last_activity, expires_at=expires_at)
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount > 0

"""
Session Store

Durable per-device session records with a sliding inactivity deadline.

Every mutation that removes rows returns the removed rows, read inside the
same transaction before the delete, so callers always broadcast from data
captured before the row disappeared.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from src.app.services.unit_of_work import UnitOfWork
from src.app.services.user_locks import UserLocks
from src.domain.base import utcnow
from src.domain.device import DeviceInfo
from src.domain.entities import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSettings:
    timeout: timedelta = timedelta(minutes=5)
    lifetime: timedelta = timedelta(hours=168)
    max_per_user: int = 5

    @classmethod
    def from_config(cls, config) -> "SessionSettings":
        return cls(
            timeout=timedelta(seconds=config.SESSION_TIMEOUT),
            lifetime=timedelta(seconds=config.SESSION_LIFETIME),
            max_per_user=config.MAX_SESSIONS_PER_USER,
        )


@dataclass(frozen=True)
class SessionCreation:
    session: Session
    evicted: List[Session] = field(default_factory=list)


class SessionStore:
    """
    Business Rules:
    - At most max_per_user rows per user; create() evicts the oldest by created_at
    - expires_at = min(now + timeout, created_at + lifetime), recomputed on touch()
    - A session is expired iff now > expires_at, or the row is gone
    - touch() never revives an expired session and is a no-op on missing rows
    - Evicted and deleted sessions have their refresh tokens revoked
    """

    def __init__(
        self,
        uow: UnitOfWork,
        locks: UserLocks,
        settings: SessionSettings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow = uow
        self.locks = locks
        self.settings = settings
        self.clock = clock

    def deadline(self, created_at: datetime, now: datetime) -> datetime:
        return min(now + self.settings.timeout, created_at + self.settings.lifetime)

    async def create(
        self,
        user_id: UUID,
        device_info: Optional[DeviceInfo],
        ip_address: Optional[str],
        session_id: str,
    ) -> SessionCreation:
        """
        Insert a session, evicting the user's oldest sessions first if at the cap.

        Eviction and insert commit together; a cancelled call rolls back both.
        """
        async with self.locks.lock_for(user_id):
            async with self.uow:
                existing = await self.uow.sessions.list_by_user(user_id)
                overflow = len(existing) - self.settings.max_per_user + 1
                evicted = existing[:overflow] if overflow > 0 else []

                for victim in evicted:
                    await self.uow.sessions.delete_by_id(victim.id)

                now = self.clock()
                if evicted:
                    await self.uow.refresh_tokens.revoke_by_session_ids(
                        [victim.id for victim in evicted], now
                    )

                session = await self.uow.sessions.create(
                    Session(
                        id=session_id,
                        user_id=user_id,
                        device_info=device_info.model_dump() if device_info else None,
                        ip_address=ip_address,
                        created_at=now,
                        last_activity=now,
                        expires_at=self.deadline(now, now),
                    )
                )
                await self.uow.commit()

        for victim in evicted:
            logger.info(
                f"Session {victim.id} evicted for user {user_id} "
                f"(limit {self.settings.max_per_user})"
            )
        logger.info(f"Session {session.id} created for user {user_id}")
        return SessionCreation(session=session, evicted=evicted)

    async def get(self, session_id: str) -> Optional[Session]:
        async with self.uow:
            return await self.uow.sessions.get_by_id(session_id)

    async def list_by_user(self, user_id: UUID) -> List[Session]:
        """All of a user's sessions, oldest first (eviction order)"""
        async with self.uow:
            return await self.uow.sessions.list_by_user(user_id)

    async def touch(self, session_id: str) -> Optional[Session]:
        """
        Record activity: last_activity = now, expires_at slides forward.

        Returns the updated session, or None when the session is missing or
        already expired. Neither case is an error.
        """
        async with self.uow:
            session = await self.uow.sessions.get_by_id(session_id)
            now = self.clock()
            if session is None or session.is_expired_at(now):
                logger.debug(f"Touch skipped for missing or expired session {session_id}")
                return None

            expires_at = self.deadline(session.created_at, now)
            updated = await self.uow.sessions.update_activity(session_id, now, expires_at)
            if not updated:
                logger.debug(f"Session {session_id} removed before touch")
                return None
            await self.uow.commit()

        session.last_activity = now
        session.expires_at = expires_at
        return session

    async def is_expired(self, session_id: str) -> bool:
        async with self.uow:
            session = await self.uow.sessions.get_by_id(session_id)
            return session is None or session.is_expired_at(self.clock())

    async def delete(
        self, session_id: str, owner_id: Optional[UUID] = None
    ) -> Optional[Session]:
        """
        Delete one session and return the row as it was before deletion.

        With owner_id set, sessions belonging to another user are left alone.
        Returns None if nothing was deleted.
        """
        async with self.uow:
            probe = await self.uow.sessions.get_by_id(session_id)
            user_id = probe.user_id if probe is not None else None
        if user_id is None or (owner_id is not None and user_id != owner_id):
            return None

        async with self.locks.lock_for(user_id):
            async with self.uow:
                session = await self.uow.sessions.get_by_id(session_id)
                if session is None:
                    return None
                if not await self.uow.sessions.delete_by_id(session_id):
                    return None
                await self.uow.refresh_tokens.revoke_by_session_ids(
                    [session_id], self.clock()
                )
                await self.uow.commit()

        logger.info(f"Session {session_id} deleted for user {session.user_id}")
        return session

    async def delete_all_except_current(
        self, user_id: UUID, current_session_id: str
    ) -> List[Session]:
        """Delete every other session of the user. Returns the deleted rows."""
        async with self.locks.lock_for(user_id):
            async with self.uow:
                sessions = await self.uow.sessions.list_by_user(user_id)
                deleted = []
                for session in sessions:
                    if session.id == current_session_id:
                        continue
                    if await self.uow.sessions.delete_by_id(session.id):
                        deleted.append(session)
                if deleted:
                    await self.uow.refresh_tokens.revoke_by_session_ids(
                        [session.id for session in deleted], self.clock()
                    )
                await self.uow.commit()

        logger.info(
            f"Deleted {len(deleted)} other session(s) for user {user_id}, "
            f"kept {current_session_id}"
        )
        return deleted

    async def delete_expired(self, limit: int) -> List[Session]:
        """
        Delete up to `limit` sessions past their deadline, in one transaction.

        Rows removed concurrently between the read and the delete are skipped.
        """
        now = self.clock()
        async with self.uow:
            candidates = await self.uow.sessions.list_expired(now, limit)
            deleted = []
            for session in candidates:
                if await self.uow.sessions.delete_by_id(session.id, expired_before=now):
                    deleted.append(session)
            if deleted:
                await self.uow.refresh_tokens.revoke_by_session_ids(
                    [session.id for session in deleted], now
                )
            await self.uow.commit()
        return deleted

    def time_remaining(self, session: Session) -> timedelta:
        return max(session.expires_at - self.clock(), timedelta(0))

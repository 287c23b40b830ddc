"""
Session Status Use Case

Time left before the current session expires from inactivity.
"""

from src.libs.result import Error, Result, Return
from src.app.services.session_store import SessionStore
from src.domain.auth import AuthContext
from .dtos import SessionStatusResponse


class SessionStatusUseCase:
    def __init__(self, session_store: SessionStore):
        self.session_store = session_store

    async def execute(self, auth: AuthContext) -> Result[SessionStatusResponse]:
        session = await self.session_store.get(auth.session_id)
        if session is None:
            return Return.err(Error("SESSION_NOT_FOUND", "Session not found"))

        remaining = self.session_store.time_remaining(session)
        return Return.ok(
            SessionStatusResponse(
                session_id=session.id,
                last_activity=session.last_activity,
                expires_at=session.expires_at,
                is_expired=session.is_expired_at(self.session_store.clock()),
                time_remaining_ms=int(remaining.total_seconds() * 1000),
                timeout_ms=int(self.session_store.settings.timeout.total_seconds() * 1000),
            )
        )

"""
List Sessions Use Case
"""

from src.libs.result import Result, Return
from src.app.services.session_store import SessionStore
from src.domain.auth import AuthContext
from .dtos import SessionInfo, SessionListResponse


class ListSessionsUseCase:
    """
    Business Rules:
    - Only the caller's own sessions
    - Oldest first, the same order eviction uses
    - Rows already past their deadline (awaiting the sweeper) are hidden
    """

    def __init__(self, session_store: SessionStore):
        self.session_store = session_store

    async def execute(self, auth: AuthContext) -> Result[SessionListResponse]:
        sessions = await self.session_store.list_by_user(auth.user_id)
        now = self.session_store.clock()
        return Return.ok(
            SessionListResponse(
                sessions=[
                    SessionInfo.from_entity(session, auth.session_id)
                    for session in sessions
                    if not session.is_expired_at(now)
                ]
            )
        )

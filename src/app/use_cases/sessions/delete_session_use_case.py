"""
Delete Session Use Case

Logs one device out remotely.
"""

import logging

from src.libs.result import Result, Return
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.session_store import SessionStore
from src.domain.auth import AuthContext
from src.domain.entities import ForceLogoutReason
from .dtos import DeleteSessionResponse

logger = logging.getLogger(__name__)


class DeleteSessionUseCase:
    """
    Business Rules:
    - Users can only delete their own sessions
    - Deleting an unknown (or already deleted) session is an idempotent success
    - The deleted device receives force-logout(device-logout) targeted at its
      session id; every device receives session-update
    """

    def __init__(self, session_store: SessionStore, dispatcher: BroadcastDispatcher):
        self.session_store = session_store
        self.dispatcher = dispatcher

    async def execute(self, auth: AuthContext, session_id: str) -> Result[DeleteSessionResponse]:
        deleted = await self.session_store.delete(session_id, owner_id=auth.user_id)
        if deleted is None:
            logger.info(f"Session {session_id} already gone for user {auth.user_id}")
            return Return.ok(DeleteSessionResponse(session_id=session_id, deleted=False))

        await self.dispatcher.force_logout(
            deleted.user_id,
            ForceLogoutReason.device_logout,
            session_id=deleted.id,
        )
        await self.dispatcher.session_update(deleted.user_id)

        return Return.ok(DeleteSessionResponse(session_id=deleted.id, deleted=True))

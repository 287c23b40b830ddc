"""
Logout Use Case

Ends the caller's current device session.
"""

from typing import Optional

from src.libs.result import Result, Return
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.session_store import SessionStore
from src.app.services.token_service import TokenService
from src.domain.auth import AuthContext
from .dtos import LogoutResponse


class LogoutUseCase:
    """
    Business Rules:
    - Deletes the current session (refresh tokens bound to it are revoked with it)
    - A refresh token presented with the request is revoked too
    - Other devices receive session-update; the logging-out device needs no push
    - Logging out twice succeeds
    """

    def __init__(
        self,
        token_service: TokenService,
        session_store: SessionStore,
        dispatcher: BroadcastDispatcher,
    ):
        self.token_service = token_service
        self.session_store = session_store
        self.dispatcher = dispatcher

    async def execute(
        self, auth: AuthContext, refresh_token: Optional[str] = None
    ) -> Result[LogoutResponse]:
        deleted = await self.session_store.delete(auth.session_id, owner_id=auth.user_id)

        if refresh_token:
            await self.token_service.revoke(refresh_token)

        if deleted is not None:
            await self.dispatcher.session_update(deleted.user_id)

        return Return.ok(
            LogoutResponse(message="Logout successful", session_deleted=deleted is not None)
        )

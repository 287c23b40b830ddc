"""
Delete Other Sessions Use Case

"Log out everywhere else": removes every session of the caller except the
one making the request.
"""

from src.libs.result import Result, Return
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.session_store import SessionStore
from src.domain.auth import AuthContext
from src.domain.entities import ForceLogoutReason
from .dtos import DeleteOtherSessionsResponse


class DeleteOtherSessionsUseCase:
    """
    Business Rules:
    - The current session is never deleted
    - force-logout(logout-all-devices) goes to every connection of the user,
      carrying exclude_session_token = current session; the initiating device
      ignores it on receipt
    """

    def __init__(self, session_store: SessionStore, dispatcher: BroadcastDispatcher):
        self.session_store = session_store
        self.dispatcher = dispatcher

    async def execute(self, auth: AuthContext) -> Result[DeleteOtherSessionsResponse]:
        deleted = await self.session_store.delete_all_except_current(
            auth.user_id, auth.session_id
        )

        if deleted:
            await self.dispatcher.force_logout(
                auth.user_id,
                ForceLogoutReason.logout_all_devices,
                exclude_session_token=auth.session_id,
            )
            await self.dispatcher.session_update(auth.user_id)

        return Return.ok(
            DeleteOtherSessionsResponse(
                deleted_count=len(deleted), kept_session_id=auth.session_id
            )
        )

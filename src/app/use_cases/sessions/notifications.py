"""
Push notifications that follow session mutations.

Always called with rows captured before they were deleted.
"""

from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.session_store import SessionCreation
from src.domain.entities import ForceLogoutReason

SESSION_LIMIT_MESSAGE = "Signed out because the maximum number of active sessions was reached"


async def notify_session_created(
    dispatcher: BroadcastDispatcher, creation: SessionCreation
) -> None:
    for victim in creation.evicted:
        await dispatcher.force_logout(
            victim.user_id,
            ForceLogoutReason.device_logout,
            message=SESSION_LIMIT_MESSAGE,
            session_id=victim.id,
        )
    await dispatcher.session_update(creation.session.user_id)

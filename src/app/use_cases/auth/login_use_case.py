"""
Login Use Case

Authenticates a user and opens a new device session.
"""

import logging

from src.libs.result import Error, Result, Return
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.credentials import burn_password_check, verify_password
from src.app.services.session_store import SessionStore
from src.app.services.token_service import TokenService
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.sessions.notifications import notify_session_created
from src.domain.base import generate_session_id, utcnow
from .dtos import AuthResponse, LoginCommand, UserInfo

logger = logging.getLogger(__name__)


class LoginUseCase:
    """
    Use case for user login and token issuance.

    Business Rules:
    - Constant-time password comparison to prevent timing attacks
    - Every login creates a new Session bound to the new access token
    - Over MAX_SESSIONS_PER_USER, the oldest session is evicted and that
      device receives force-logout(device-logout)
    - Updates user.last_login_at
    """

    def __init__(
        self,
        uow: UnitOfWork,
        token_service: TokenService,
        session_store: SessionStore,
        dispatcher: BroadcastDispatcher,
    ):
        self.uow = uow
        self.token_service = token_service
        self.session_store = session_store
        self.dispatcher = dispatcher

    async def execute(self, command: LoginCommand) -> Result[AuthResponse]:
        """
        Execute login use case.

        Args:
            command: LoginCommand with credentials and device details

        Returns:
            Result with AuthResponse containing tokens and session id, or Error
        """
        async with self.uow:
            user = await self.uow.users.get_by_email(command.email)

            # Always perform a hash check even if user not found
            if user is None:
                burn_password_check(command.password)
                return Return.err(
                    Error("INVALID_CREDENTIALS", "Invalid email or password")
                )

            if not verify_password(command.password, user.password_hash):
                return Return.err(
                    Error("INVALID_CREDENTIALS", "Invalid email or password")
                )

            user.last_login_at = utcnow()
            await self.uow.users.update(user)
            await self.uow.commit()

        # Session row first: a refresh token must never outlive a failed create
        session_id = generate_session_id()
        creation = await self.session_store.create(
            user.id, command.device_info, command.ip_address, session_id
        )
        tokens = await self.token_service.issue(
            user.id, user.email, user.role, session_id=session_id
        )
        await notify_session_created(self.dispatcher, creation)
        logger.info(f"User {user.id} logged in, session {tokens.session_id}")

        return Return.ok(
            AuthResponse(
                user=UserInfo.from_entity(user),
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                session_id=tokens.session_id,
            )
        )

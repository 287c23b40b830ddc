from src.libs.result import Error, Result, Return

from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.credentials import hash_password
from src.app.services.session_store import SessionStore
from src.app.services.token_service import TokenService
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.sessions.notifications import notify_session_created
from src.domain.base import generate_session_id, utcnow
from src.domain.entities import User
from .dtos import AuthResponse, UserInfo
from .signup_dto import SignupCommand


class SignupUseCase:
    """
    Signup Use Case

    Command/Response Pattern:
    - Input: SignupCommand (validated business intent)
    - Output: Result[AuthResponse] (structured response)

    Business Logic:
    1. Check if email already exists
    2. Hash password with bcrypt
    3. Create User and commit
    4. Create the Session row for the signing-up device
    5. Issue access + refresh tokens bound to that session id
    6. Broadcast session-update to the user's devices
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

    async def execute(self, command: SignupCommand) -> Result[AuthResponse]:
        """
        Execute signup use case

        Args:
            command: SignupCommand with validated email, password, role

        Returns:
            Result[AuthResponse] with user data and tokens
            or Error(EMAIL_ALREADY_EXISTS) if email exists
        """
        async with self.uow:
            existing_user = await self.uow.users.get_by_email(command.email)
            if existing_user:
                return Return.err(
                    Error("EMAIL_ALREADY_EXISTS", "User with this email already exists")
                )

            user = await self.uow.users.create(
                User(
                    email=command.email,
                    name=command.name,
                    password_hash=hash_password(command.password),
                    role=command.role,
                    last_login_at=utcnow(),
                )
            )
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

        return Return.ok(
            AuthResponse(
                user=UserInfo.from_entity(user),
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                session_id=tokens.session_id,
            )
        )

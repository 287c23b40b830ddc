from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from src.api.error import raise_for_error
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.credentials import MAX_PASSWORD_BYTES, password_fits
from src.app.services.device_info import parse_user_agent
from src.app.services.session_store import SessionStore
from src.app.services.token_service import TokenService
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.auth import (
    AuthResponse,
    LoginCommand,
    LoginUseCase,
    LogoutResponse,
    LogoutUseCase,
    RefreshTokenResponse,
    RefreshTokenUseCase,
    SignupCommand,
    SignupUseCase,
    UserInfo,
)
from src.app.use_cases.sessions import SessionStatusResponse, SessionStatusUseCase
from src.app.use_cases.users import GetCurrentUserUseCase
from src.depends import (
    client_host,
    get_dispatcher,
    get_session_store,
    get_token_service,
    get_unit_of_work,
    rate_limit,
    require_any_role,
)
from src.domain.auth import AuthContext
from src.domain.entities import OperationClass, Role

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _check_password_length(value: str) -> str:
    if not password_fits(value):
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class SignupRequest(BaseModel):
    """
    Signup HTTP request payload

    Validates incoming HTTP request before converting to SignupCommand.
    """

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, description="User password (min 8 chars)")
    name: Optional[str] = Field(None, max_length=255, description="Display name")
    role: Role = Field(Role.STARTER, description="Subscription role")

    @field_validator("password")
    @classmethod
    def password_within_bcrypt_limit(cls, value: str) -> str:
        return _check_password_length(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def password_within_bcrypt_limit(cls, value: str) -> str:
        return _check_password_length(value)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = Field(
        None, description="Refresh token to revoke along with the session"
    )


def _device(request: Request):
    host = client_host(request)
    return parse_user_agent(request.headers.get("user-agent"), host), host


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=AuthResponse,
    dependencies=[Depends(rate_limit(OperationClass.auth))],
)
async def signup(
    body: SignupRequest,
    request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    token_service: TokenService = Depends(get_token_service),
    session_store: SessionStore = Depends(get_session_store),
    dispatcher: BroadcastDispatcher = Depends(get_dispatcher),
):
    """
    User Signup

    Creates the account and opens the first device session.

    Raises:
        - 409 Conflict: Email already exists
        - 422 Unprocessable Entity: Invalid input (handled by FastAPI)
          or a password longer than 72 bytes
        - 429 Too Many Requests: Auth rate limit exceeded
    """
    device_info, ip_address = _device(request)
    command = SignupCommand(
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        device_info=device_info,
        ip_address=ip_address,
    )

    use_case = SignupUseCase(uow, token_service, session_store, dispatcher)
    result = await use_case.execute(command)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    response_model=AuthResponse,
    dependencies=[Depends(rate_limit(OperationClass.auth))],
)
async def login(
    body: LoginRequest,
    request: Request,
    uow: UnitOfWork = Depends(get_unit_of_work),
    token_service: TokenService = Depends(get_token_service),
    session_store: SessionStore = Depends(get_session_store),
    dispatcher: BroadcastDispatcher = Depends(get_dispatcher),
):
    """
    User Login

    Every login opens a new device session. Beyond the per-user cap the
    oldest session is evicted and its device is told to log out.

    Raises:
        - 401 Unauthorized: Invalid email or password
        - 429 Too Many Requests: Auth rate limit exceeded
    """
    device_info, ip_address = _device(request)
    command = LoginCommand(
        email=body.email,
        password=body.password,
        device_info=device_info,
        ip_address=ip_address,
    )

    use_case = LoginUseCase(uow, token_service, session_store, dispatcher)
    result = await use_case.execute(command)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.post("/refresh", status_code=status.HTTP_200_OK, response_model=RefreshTokenResponse)
async def refresh(
    body: RefreshTokenRequest,
    token_service: TokenService = Depends(get_token_service),
):
    """
    Refresh Access Token

    Rotates the refresh token. The new access token keeps the session id.

    Raises:
        - 401 Unauthorized: Refresh token unknown, revoked or expired
    """
    use_case = RefreshTokenUseCase(token_service)
    result = await use_case.execute(body.refresh_token)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.post(
    "/logout",
    status_code=status.HTTP_200_OK,
    response_model=LogoutResponse,
    dependencies=[Depends(rate_limit(OperationClass.session_management))],
)
async def logout(
    body: Optional[LogoutRequest] = None,
    auth: AuthContext = Depends(require_any_role),
    token_service: TokenService = Depends(get_token_service),
    session_store: SessionStore = Depends(get_session_store),
    dispatcher: BroadcastDispatcher = Depends(get_dispatcher),
):
    """Log out the current device"""
    use_case = LogoutUseCase(token_service, session_store, dispatcher)
    result = await use_case.execute(auth, body.refresh_token if body else None)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.get("/me", status_code=status.HTTP_200_OK, response_model=UserInfo)
async def get_me(
    auth: AuthContext = Depends(require_any_role),
    uow: UnitOfWork = Depends(get_unit_of_work),
):
    """
    Current User

    Raises:
        - 401 Unauthorized: Missing/invalid token or expired session
        - 404 Not Found: User no longer exists
    """
    use_case = GetCurrentUserUseCase(uow)
    result = await use_case.execute(auth)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.get("/session", status_code=status.HTTP_200_OK, response_model=SessionStatusResponse)
async def get_session_status(
    auth: AuthContext = Depends(require_any_role),
    session_store: SessionStore = Depends(get_session_store),
):
    """Time left on the current session before it expires from inactivity"""
    use_case = SessionStatusUseCase(session_store)
    result = await use_case.execute(auth)

    if result.is_err():
        raise_for_error(result.error)

    return result.value

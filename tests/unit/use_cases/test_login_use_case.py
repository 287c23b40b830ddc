from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import bcrypt
import pytest

from src.app.services.session_store import SessionCreation
from src.app.services.token_service import IssuedTokens
from src.app.use_cases.auth import LoginCommand, LoginUseCase
from src.domain.device import DeviceInfo
from src.domain.entities import ForceLogoutReason, Role, Session, User

PASSWORD = "SecurePass123!"


@pytest.fixture
def user():
    return User(
        id=uuid4(),
        email="user@acme.com",
        password_hash=bcrypt.hashpw(PASSWORD.encode(), bcrypt.gensalt(4)).decode(),
        role=Role.PRO,
    )


@pytest.fixture
def token_service():
    service = MagicMock()

    async def issue(user_id, email, role, session_id=None):
        return IssuedTokens(
            access_token="access",
            refresh_token="refresh",
            session_id=session_id,
            user_id=user_id,
            role=role,
        )

    service.issue = AsyncMock(side_effect=issue)
    return service


@pytest.fixture
def session_store(user):
    store = MagicMock()
    store.create = AsyncMock(
        return_value=SessionCreation(session=Session(id="new-session", user_id=user.id))
    )
    return store


@pytest.mark.asyncio
async def test_successful_login(mock_uow, token_service, session_store, mock_dispatcher, user):
    mock_uow.users.get_by_email.return_value = user
    use_case = LoginUseCase(mock_uow, token_service, session_store, mock_dispatcher)

    result = await use_case.execute(
        LoginCommand(
            email="user@acme.com",
            password=PASSWORD,
            device_info=DeviceInfo(browser="Chrome 120"),
            ip_address="10.0.0.1",
        )
    )

    assert result.is_ok()
    data = result.value
    assert data.user.role == "PRO"
    assert user.last_login_at is not None
    session_store.create.assert_awaited_once_with(
        user.id, DeviceInfo(browser="Chrome 120"), "10.0.0.1", data.session_id
    )
    token_service.issue.assert_awaited_once_with(
        user.id, user.email, user.role, session_id=data.session_id
    )
    mock_dispatcher.session_update.assert_awaited_once_with(user.id)


@pytest.mark.asyncio
async def test_login_with_wrong_password(mock_uow, token_service, session_store, mock_dispatcher, user):
    mock_uow.users.get_by_email.return_value = user
    use_case = LoginUseCase(mock_uow, token_service, session_store, mock_dispatcher)

    result = await use_case.execute(LoginCommand(email="user@acme.com", password="wrong"))

    assert result.is_err()
    assert result.error.code == "INVALID_CREDENTIALS"
    token_service.issue.assert_not_awaited()
    session_store.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_login_with_unknown_email(mock_uow, token_service, session_store, mock_dispatcher):
    mock_uow.users.get_by_email.return_value = None
    use_case = LoginUseCase(mock_uow, token_service, session_store, mock_dispatcher)

    result = await use_case.execute(LoginCommand(email="ghost@acme.com", password=PASSWORD))

    assert result.error.code == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_login_over_cap_logs_out_evicted_device(
    mock_uow, token_service, session_store, mock_dispatcher, user
):
    mock_uow.users.get_by_email.return_value = user
    evicted = Session(id="oldest", user_id=user.id)
    session_store.create.return_value = SessionCreation(
        session=Session(id="new-session", user_id=user.id), evicted=[evicted]
    )
    use_case = LoginUseCase(mock_uow, token_service, session_store, mock_dispatcher)

    result = await use_case.execute(LoginCommand(email="user@acme.com", password=PASSWORD))

    assert result.is_ok()
    mock_dispatcher.force_logout.assert_awaited_once()
    call = mock_dispatcher.force_logout.await_args
    assert call.args == (user.id, ForceLogoutReason.device_logout)
    assert call.kwargs["session_id"] == "oldest"
    mock_dispatcher.session_update.assert_awaited_once_with(user.id)


@pytest.mark.asyncio
async def test_no_refresh_token_when_session_create_fails(
    mock_uow, token_service, session_store, mock_dispatcher, user
):
    mock_uow.users.get_by_email.return_value = user
    session_store.create.side_effect = RuntimeError("database is locked")
    use_case = LoginUseCase(mock_uow, token_service, session_store, mock_dispatcher)

    with pytest.raises(RuntimeError):
        await use_case.execute(LoginCommand(email="user@acme.com", password=PASSWORD))

    token_service.issue.assert_not_awaited()
    mock_dispatcher.session_update.assert_not_awaited()

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from jose import jwt

from src.app.services.token_service import (
    TokenService,
    TokenSettings,
    hash_refresh_token,
    verify_access_token,
)
from src.domain.entities import RefreshToken, Role, User

SETTINGS = TokenSettings(secret="unit-test-secret", access_ttl=timedelta(minutes=15))


@pytest.fixture
def token_service(mock_uow, clock):
    return TokenService(mock_uow, SETTINGS, clock=clock)


@pytest.mark.asyncio
async def test_issue_binds_tokens_to_one_session(token_service, mock_uow):
    user_id = uuid4()

    tokens = await token_service.issue(user_id, "user@example.com", Role.PRO)

    claims = verify_access_token(tokens.access_token, SETTINGS).value
    assert claims.user_id == user_id
    assert claims.role == Role.PRO
    assert claims.session_id == tokens.session_id

    stored = mock_uow.refresh_tokens.create.call_args.args[0]
    assert stored.session_id == tokens.session_id
    assert stored.token_hash == hash_refresh_token(tokens.refresh_token)
    assert stored.token_hash != tokens.refresh_token
    mock_uow.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_issue_reuses_given_session_id(token_service):
    tokens = await token_service.issue(uuid4(), "user@example.com", Role.STARTER, "fixed-id")

    assert tokens.session_id == "fixed-id"


def test_verify_rejects_expired_token():
    token = jwt.encode(
        {
            "user_id": str(uuid4()),
            "email": "a@b.co",
            "role": "STARTER",
            "session_id": "s",
            "type": "access",
            "iat": datetime.now(UTC) - timedelta(hours=2),
            "exp": datetime.now(UTC) - timedelta(hours=1),
        },
        SETTINGS.secret,
        algorithm="HS256",
    )

    result = verify_access_token(token, SETTINGS)

    assert result.error.code == "EXPIRED"


def test_verify_rejects_wrong_signature(token_service):
    other = TokenSettings(secret="someone-else")
    token = TokenService(None, other)._sign_access(uuid4(), "a@b.co", Role.PRO, "s")

    assert token_service.verify_access(token).error.code == "INVALID_SIGNATURE"


def test_verify_rejects_garbage():
    assert verify_access_token("not-a-jwt", SETTINGS).error.code == "MALFORMED"


def test_verify_rejects_token_without_session_claim():
    token = jwt.encode(
        {
            "user_id": str(uuid4()),
            "email": "a@b.co",
            "role": "PRO",
            "type": "access",
            "iat": datetime.now(UTC),
            "exp": datetime.now(UTC) + timedelta(minutes=5),
        },
        SETTINGS.secret,
        algorithm="HS256",
    )

    assert verify_access_token(token, SETTINGS).error.code == "MALFORMED"


def _stored(clock, user_id, **overrides):
    values = dict(
        id=uuid4(),
        user_id=user_id,
        session_id="session-1",
        token_hash=hash_refresh_token("old-token"),
        expires_at=clock() + timedelta(days=7),
    )
    values.update(overrides)
    return RefreshToken(**values)


@pytest.mark.asyncio
async def test_refresh_rotates_and_keeps_session(token_service, mock_uow, clock):
    user = User(id=uuid4(), email="user@example.com", password_hash="x", role=Role.PRO)
    mock_uow.refresh_tokens.get_by_hash.return_value = _stored(clock, user.id)
    mock_uow.users.get_by_id.return_value = user

    result = await token_service.refresh("old-token")

    assert result.is_ok()
    tokens = result.value
    assert tokens.session_id == "session-1"
    assert tokens.refresh_token != "old-token"
    mock_uow.refresh_tokens.revoke_if_active.assert_awaited_once()
    new_row = mock_uow.refresh_tokens.create.call_args.args[0]
    assert new_row.session_id == "session-1"
    assert verify_access_token(tokens.access_token, SETTINGS).value.session_id == "session-1"


@pytest.mark.asyncio
async def test_refresh_unknown_token(token_service):
    result = await token_service.refresh("nope")

    assert result.error.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_refresh_revoked_token(token_service, mock_uow, clock):
    mock_uow.refresh_tokens.get_by_hash.return_value = _stored(
        clock, uuid4(), revoked_at=clock()
    )

    result = await token_service.refresh("old-token")

    assert result.error.code == "REVOKED"
    mock_uow.refresh_tokens.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_refresh_expired_token(token_service, mock_uow, clock):
    mock_uow.refresh_tokens.get_by_hash.return_value = _stored(
        clock, uuid4(), expires_at=clock() - timedelta(seconds=1)
    )

    result = await token_service.refresh("old-token")

    assert result.error.code == "EXPIRED"


@pytest.mark.asyncio
async def test_refresh_loses_concurrent_rotation(token_service, mock_uow, clock):
    mock_uow.refresh_tokens.get_by_hash.return_value = _stored(clock, uuid4())
    mock_uow.refresh_tokens.revoke_if_active.return_value = False

    result = await token_service.refresh("old-token")

    assert result.error.code == "REVOKED"
    mock_uow.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_revoke_unknown_token_is_noop(token_service, mock_uow):
    assert await token_service.revoke("nope") is False
    mock_uow.refresh_tokens.revoke_if_active.assert_not_awaited()

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest


@pytest.fixture
def mock_uow():
    uow = MagicMock()
    uow.__aenter__ = AsyncMock(return_value=uow)
    uow.__aexit__ = AsyncMock(return_value=False)  # Must return False to not suppress exceptions
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()

    uow.users = MagicMock()
    uow.users.get_by_email = AsyncMock(return_value=None)
    uow.users.get_by_id = AsyncMock(return_value=None)
    uow.users.create = AsyncMock(side_effect=lambda user: user)
    uow.users.update = AsyncMock(side_effect=lambda user: user)

    uow.sessions = MagicMock()
    uow.sessions.get_by_id = AsyncMock(return_value=None)
    uow.sessions.list_by_user = AsyncMock(return_value=[])
    uow.sessions.create = AsyncMock(side_effect=lambda session: session)
    uow.sessions.delete_by_id = AsyncMock(return_value=True)
    uow.sessions.list_expired = AsyncMock(return_value=[])
    uow.sessions.update_activity = AsyncMock(return_value=True)

    uow.refresh_tokens = MagicMock()
    uow.refresh_tokens.create = AsyncMock(side_effect=lambda token: token)
    uow.refresh_tokens.get_by_hash = AsyncMock(return_value=None)
    uow.refresh_tokens.revoke_if_active = AsyncMock(return_value=True)
    uow.refresh_tokens.revoke_by_session_ids = AsyncMock(return_value=0)
    return uow


class FakeClock:
    """Settable clock returning naive UTC datetimes"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChannel:
    """Stand-in for a WebSocket"""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.sent = []
        self.closed_with = None
        self.fail = fail
        self.delay = delay

    async def send_json(self, data):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.closed_with = code


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def make_channel():
    return FakeChannel


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.force_logout = AsyncMock(return_value=1)
    dispatcher.session_update = AsyncMock(return_value=1)
    dispatcher.notify = AsyncMock(return_value=1)
    return dispatcher

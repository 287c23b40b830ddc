from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient

from src.app.services.connection_registry import ConnectionHandle


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingChannel:
    def __init__(self):
        self.sent = []

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code: int = 1000):
        pass


@pytest.fixture
def clock(app):
    clock = FakeClock()
    app.state.clock = clock
    return clock


@pytest.mark.asyncio
async def test_activity_keeps_session_alive(client: AsyncClient, clock, signup, auth_headers):
    tokens = await signup()
    headers = auth_headers(tokens["access_token"])

    for _ in range(3):
        clock.advance(minutes=4)
        assert (await client.get("/auth/me", headers=headers)).status_code == 200


@pytest.mark.asyncio
async def test_idle_session_expires(client: AsyncClient, clock, signup, auth_headers):
    tokens = await signup()

    clock.advance(minutes=5, seconds=1)
    response = await client.get("/auth/me", headers=auth_headers(tokens["access_token"]))

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "SESSION_EXPIRED"


@pytest.mark.asyncio
async def test_expired_session_is_not_revived(client: AsyncClient, clock, signup, auth_headers):
    tokens = await signup()
    headers = auth_headers(tokens["access_token"])

    clock.advance(minutes=6)
    await client.get("/auth/me", headers=headers)
    await client.get("/sessions", headers=headers)

    clock.advance(seconds=1)
    response = await client.get("/auth/me", headers=headers)
    assert response.json()["error"]["code"] == "SESSION_EXPIRED"


@pytest.mark.asyncio
async def test_sweeper_removes_expired_sessions_and_notifies(
    app, client: AsyncClient, clock, signup, login, auth_headers
):
    idle = await signup()
    channel = RecordingChannel()
    await app.state.registry.register(
        ConnectionHandle(user_id=idle["user"]["id"], channel=channel, session_id=idle["session_id"])
    )

    clock.advance(minutes=10)
    active = await login()

    affected = await app.state.sweeper.run_once()

    assert affected == {idle["user"]["id"]: [idle["session_id"]]}
    logout = [m["data"] for m in channel.sent if m["type"] == "force-logout"]
    assert len(logout) == 1
    assert logout[0]["reason"] == "session-expired"
    assert logout[0]["session_ids"] == [idle["session_id"]]

    listing = await client.get("/sessions", headers=auth_headers(active["access_token"]))
    assert [s["id"] for s in listing.json()["sessions"]] == [active["session_id"]]

    refresh = await client.post("/auth/refresh", json={"refresh_token": idle["refresh_token"]})
    assert refresh.status_code == 401

    # A second run finds nothing
    assert await app.state.sweeper.run_once() == {}

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, create_engine
from sqlmodel.ext.asyncio.session import AsyncSession
from starlette.websockets import WebSocketDisconnect

from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_unit_of_work
from tests.integration.support import TestConfig, relaxed_rate_limiter

WS_DB_FILE = "./test_ws.db"


@pytest.fixture
def ws_client():
    sync_engine = create_engine(f"sqlite:///{WS_DB_FILE}")
    SQLModel.metadata.create_all(sync_engine)

    # NullPool: connections are opened on whichever loop the test client runs
    engine = create_async_engine(f"sqlite+aiosqlite:///{WS_DB_FILE}", poolclass=NullPool)
    session_factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    from src.api.app import create_app

    app = create_app(TestConfig)
    app.state.session_factory = session_factory
    app.state.rate_limiter = relaxed_rate_limiter()

    async def override_get_unit_of_work():
        async with session_factory() as session:
            yield SqlAlchemyUnitOfWork(session)

    app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work

    with TestClient(app) as client:
        yield client

    SQLModel.metadata.drop_all(sync_engine)
    sync_engine.dispose()


def _signup(client, email="user@acme.com"):
    response = client.post("/auth/signup", json={"email": email, "password": "SecurePass123!"})
    assert response.status_code == 201, response.text
    return response.json()


def _login(client, email="user@acme.com"):
    response = client.post("/auth/login", json={"email": email, "password": "SecurePass123!"})
    assert response.status_code == 200, response.text
    return response.json()


def test_connect_with_query_token(ws_client):
    tokens = _signup(ws_client)

    with ws_client.websocket_connect(f"/ws?token={tokens['access_token']}") as ws:
        assert ws.receive_json() == {"type": "connected", "session_id": tokens["session_id"]}

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        assert ws_client.get("/health").json()["connections"] == 1


def test_connect_with_auth_message(ws_client):
    tokens = _signup(ws_client)

    with ws_client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "token": tokens["access_token"]})
        assert ws.receive_json()["type"] == "connected"


def test_invalid_token_is_rejected(ws_client):
    with ws_client.websocket_connect("/ws?token=garbage") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 4401
    assert ws_client.get("/health").json()["connections"] == 0


def test_token_of_deleted_session_is_rejected(ws_client):
    phone = _signup(ws_client)
    laptop = _login(ws_client)
    ws_client.delete(
        f"/sessions/{phone['session_id']}",
        headers={"Authorization": f"Bearer {laptop['access_token']}"},
    )

    with ws_client.websocket_connect(f"/ws?token={phone['access_token']}") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 4401


def test_remote_logout_reaches_the_device(ws_client):
    phone = _signup(ws_client)
    laptop = _login(ws_client)

    with ws_client.websocket_connect(f"/ws?token={phone['access_token']}") as ws:
        ws.receive_json()

        response = ws_client.delete(
            f"/sessions/{phone['session_id']}",
            headers={"Authorization": f"Bearer {laptop['access_token']}"},
        )
        assert response.status_code == 200

        message = ws.receive_json()
        assert message["type"] == "force-logout"
        assert message["data"]["reason"] == "device-logout"
        assert message["data"]["session_id"] == phone["session_id"]

        assert ws.receive_json()["type"] == "session-update"

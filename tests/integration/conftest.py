import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import get_unit_of_work
from tests.integration.support import TEST_DB_URI, TestConfig, relaxed_rate_limiter


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(TEST_DB_URI)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(db_session, session_factory):
    from src.api.app import create_app

    app = create_app(TestConfig)
    app.state.session_factory = session_factory
    app.state.rate_limiter = relaxed_rate_limiter()

    async def override_get_unit_of_work():
        yield SqlAlchemyUnitOfWork(db_session)

    app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work
    return app


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def signup(client):
    """Create a user and return the signup response body"""

    async def _signup(email="user@acme.com", password="SecurePass123!", role="STARTER"):
        response = await client.post(
            "/auth/signup", json={"email": email, "password": password, "role": role}
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _signup


@pytest.fixture
def login(client):
    async def _login(email="user@acme.com", password="SecurePass123!", user_agent=None):
        headers = {"User-Agent": user_agent} if user_agent else {}
        response = await client.post(
            "/auth/login", json={"email": email, "password": password}, headers=headers
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _login


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return bearer

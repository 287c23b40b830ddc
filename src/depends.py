from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from starlette.requests import HTTPConnection

from config import ApplicationConfig
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.api.error import raise_for_error
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.connection_registry import ConnectionRegistry
from src.app.services.pipeline import RequestPipeline
from src.app.services.rate_limiter import RateLimiter
from src.app.services.rbac import ANY_ROLE, PRO_ONLY
from src.app.services.session_store import SessionStore
from src.app.services.token_service import TokenService
from src.app.services.unit_of_work import UnitOfWork
from src.domain.auth import AuthContext
from src.domain.entities import OperationClass, Role

engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

security = HTTPBearer(auto_error=False)


async def get_unit_of_work():
    async with AsyncSessionLocal() as session:
        yield SqlAlchemyUnitOfWork(session)


@asynccontextmanager
async def unit_of_work_scope(session_factory=None):
    """Unit of work outside a request, e.g. for background tasks and sockets"""
    async with (session_factory or AsyncSessionLocal)() as session:
        yield SqlAlchemyUnitOfWork(session)


# Long-lived singletons live on app.state, built by create_app()


def get_rate_limiter(conn: HTTPConnection) -> RateLimiter:
    return conn.app.state.rate_limiter


def get_registry(conn: HTTPConnection) -> ConnectionRegistry:
    return conn.app.state.registry


def get_dispatcher(conn: HTTPConnection) -> BroadcastDispatcher:
    return conn.app.state.dispatcher


def build_token_service(state, uow: UnitOfWork) -> TokenService:
    return TokenService(uow, state.token_settings, clock=state.clock)


def build_session_store(state, uow: UnitOfWork) -> SessionStore:
    return SessionStore(uow, state.user_locks, state.session_settings, clock=state.clock)


def get_token_service(
    conn: HTTPConnection, uow: UnitOfWork = Depends(get_unit_of_work)
) -> TokenService:
    return build_token_service(conn.app.state, uow)


def get_session_store(
    conn: HTTPConnection, uow: UnitOfWork = Depends(get_unit_of_work)
) -> SessionStore:
    return build_session_store(conn.app.state, uow)


def get_pipeline(
    token_service: TokenService = Depends(get_token_service),
    session_store: SessionStore = Depends(get_session_store),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> RequestPipeline:
    return RequestPipeline(token_service, session_store, rate_limiter)


def client_host(conn: HTTPConnection) -> Optional[str]:
    return conn.client.host if conn.client else None


async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    pipeline: RequestPipeline = Depends(get_pipeline),
) -> AuthContext:
    """
    Verify the bearer token and the session it belongs to.

    Raises:
        ClientError: 401 NO_TOKEN | INVALID_TOKEN | TOKEN_EXPIRED | SESSION_EXPIRED
    """
    result = await pipeline.authenticate(credentials.credentials if credentials else None)
    if result.is_err():
        raise_for_error(result.error)

    request.state.auth = result.value
    return result.value


def require_roles(required: Iterable[Role]):
    """Dependency factory: authenticated caller holding one of the required roles"""
    required = frozenset(required)

    async def dependency(
        auth: AuthContext = Depends(get_auth_context),
        pipeline: RequestPipeline = Depends(get_pipeline),
    ) -> AuthContext:
        result = pipeline.authorize(auth, required)
        if result.is_err():
            raise_for_error(result.error)
        return auth

    return dependency


require_any_role = require_roles(ANY_ROLE)
require_pro = require_roles(PRO_ONLY)


def rate_limit(operation: OperationClass):
    """
    Dependency factory counting the call against an operation class.

    Unauthenticated classes (auth) are keyed on the client address; the rest
    on the verified caller.
    """

    if operation == OperationClass.auth:

        async def by_address(
            request: Request, pipeline: RequestPipeline = Depends(get_pipeline)
        ) -> None:
            result = pipeline.rate_limit(operation, client_host=client_host(request))
            if result.is_err():
                raise_for_error(result.error)

        return by_address

    async def by_caller(
        request: Request,
        auth: AuthContext = Depends(get_auth_context),
        pipeline: RequestPipeline = Depends(get_pipeline),
    ) -> None:
        result = pipeline.rate_limit(operation, auth=auth, client_host=client_host(request))
        if result.is_err():
            raise_for_error(result.error)

    return by_caller

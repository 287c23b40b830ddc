import asyncio
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from .error import ClientError, ServerError
import logging

from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.connection_registry import ConnectionRegistry
from src.app.services.expiration_sweeper import ExpirationSweeper
from src.app.services.rate_limiter import RateLimiter, default_policies, rate_limit_key
from src.app.services.session_store import SessionSettings
from src.app.services.token_service import TokenSettings, verify_access_token
from src.app.services.user_locks import UserLocks
from src.domain.auth import AuthContext
from src.domain.base import utcnow
from src.domain.entities import OperationClass

logger = logging.getLogger(__name__)

# Paths outside the general-API failure budget
UNLIMITED_PATHS = ("/health", "/ws")


def _error_body(code: str, message: str, details: dict) -> dict:
    return {"error": {"code": code, "message": message, **details}}


def _retry_headers(details: dict):
    retry_after = details.get("retry_after")
    return {"Retry-After": str(retry_after)} if retry_after is not None else None


async def handle_client_error(request: Request, exc: ClientError):
    error = exc.base_error
    logger.warning(f"Client error: {error.code} {error.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(error.code, error.message, error.details),
        headers=_retry_headers(error.details),
    )


async def handle_server_error(request: Request, exc: ServerError):
    logger.error(f"Server error: {exc.base_error.code} {exc.base_error.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(exc.base_error.code, "Internal server error", {}),
    )


def _bearer_identity(request: Request, token_settings: TokenSettings):
    """Caller identity from a bearer token, signature and expiry only"""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    verified = verify_access_token(token.strip(), token_settings)
    if verified.is_err():
        return None
    return AuthContext.from_claims(verified.value)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(ApplicationConfig) -> FastAPI:
    configure_logging(ApplicationConfig.LOG_LEVEL)

    registry = ConnectionRegistry()
    dispatcher = BroadcastDispatcher(
        registry, send_timeout=ApplicationConfig.BROADCAST_SEND_TIMEOUT
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if ApplicationConfig.SWEEPER_ENABLED:
            app.state.sweeper.start()
        heartbeat = None
        if ApplicationConfig.HEARTBEAT_INTERVAL > 0:
            heartbeat = asyncio.create_task(
                dispatcher.heartbeat_forever(ApplicationConfig.HEARTBEAT_INTERVAL),
                name="push-heartbeat",
            )
        yield
        if heartbeat is not None:
            heartbeat.cancel()
            with suppress(asyncio.CancelledError):
                await heartbeat
        await app.state.sweeper.stop()

    app = FastAPI(title="Session Service", version="0.1.0", lifespan=lifespan)

    app.state.config = ApplicationConfig
    app.state.clock = utcnow
    app.state.user_locks = UserLocks()
    app.state.session_settings = SessionSettings.from_config(ApplicationConfig)
    app.state.token_settings = TokenSettings.from_config(ApplicationConfig)
    app.state.rate_limiter = RateLimiter(default_policies(ApplicationConfig))
    app.state.registry = registry
    app.state.dispatcher = dispatcher

    from src.depends import build_session_store, unit_of_work_scope

    @asynccontextmanager
    async def session_store_scope():
        async with unit_of_work_scope(getattr(app.state, "session_factory", None)) as uow:
            yield build_session_store(app.state, uow)

    app.state.sweeper = ExpirationSweeper(
        session_store_scope,
        dispatcher,
        interval=ApplicationConfig.SWEEP_INTERVAL,
        batch_size=ApplicationConfig.SWEEP_BATCH_SIZE,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ApplicationConfig.CORS_ORIGINS,
        allow_credentials=ApplicationConfig.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def general_rate_limit(request: Request, call_next):
        """Failures-only budget for every API call"""
        if request.url.path.startswith(UNLIMITED_PATHS):
            return await call_next(request)

        auth = _bearer_identity(request, app.state.token_settings)
        key = rate_limit_key(auth, request.client.host if request.client else None)
        decision = app.state.rate_limiter.allow(key, OperationClass.general)
        if not decision.allowed:
            details = {"retry_after": decision.retry_after, "limit": decision.limit}
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=_error_body(
                    "RATE_LIMITED", "Too many requests, please try again later.", details
                ),
                headers=_retry_headers(details),
            )

        response = await call_next(request)
        if response.status_code >= 400:
            app.state.rate_limiter.record_failure(key, OperationClass.general)
        return response

    from src.api.routes import auth, health_check, sessions, ws

    app.include_router(health_check.router, tags=["Health"])
    app.include_router(auth.router, tags=["Authentication"])
    app.include_router(sessions.router, tags=["Sessions"])
    app.include_router(ws.router, tags=["Push"])

    app.add_exception_handler(ClientError, handle_client_error)
    app.add_exception_handler(ServerError, handle_server_error)

    return app

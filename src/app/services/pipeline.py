"""
Request Pipeline

Per-request composition: rate limit -> verify token -> session check/touch
-> role check -> handler. Protected handlers call authenticate() first and
receive an AuthContext; they never read token claims themselves.
"""

import logging
from typing import Iterable, Optional

from src.libs.result import Error, Result, Return
from src.app.services import rbac
from src.app.services.rate_limiter import RateLimitDecision, RateLimiter, rate_limit_key
from src.app.services.session_store import SessionStore
from src.app.services.token_service import TokenService
from src.domain.auth import AuthContext
from src.domain.entities import OperationClass, Role

logger = logging.getLogger(__name__)


class RequestPipeline:
    """
    Business Rules:
    - Token validity and session validity are checked independently;
      a valid token on an expired session fails with SESSION_EXPIRED
    - Every successful authentication slides the session deadline
    - Failures are returned as-is, never retried
    """

    def __init__(
        self,
        token_service: TokenService,
        session_store: SessionStore,
        rate_limiter: RateLimiter,
    ):
        self.token_service = token_service
        self.session_store = session_store
        self.rate_limiter = rate_limiter

    async def authenticate(self, raw_token: Optional[str]) -> Result[AuthContext]:
        """
        Returns:
            Result with AuthContext, or Error
            NO_TOKEN | INVALID_TOKEN | TOKEN_EXPIRED | SESSION_EXPIRED
        """
        if not raw_token:
            return Return.err(Error("NO_TOKEN", "No token provided. Please authenticate."))

        verified = self.token_service.verify_access(raw_token)
        if verified.is_err():
            if verified.error.code == "EXPIRED":
                return Return.err(Error("TOKEN_EXPIRED", "Access token has expired"))
            return Return.err(
                Error(
                    "INVALID_TOKEN",
                    "Invalid or expired token",
                    {"reason": verified.error.code},
                )
            )
        claims = verified.value

        if await self.session_store.is_expired(claims.session_id):
            logger.info(f"Rejected token for expired session {claims.session_id}")
            return Return.err(
                Error(
                    "SESSION_EXPIRED",
                    "Session expired due to inactivity. Please login again.",
                )
            )

        await self.session_store.touch(claims.session_id)
        return Return.ok(AuthContext.from_claims(claims))

    def rate_limit(
        self,
        operation: OperationClass,
        auth: Optional[AuthContext] = None,
        client_host: Optional[str] = None,
    ) -> Result[RateLimitDecision]:
        """
        Returns:
            Result with the decision, or Error RATE_LIMITED carrying retry_after
        """
        decision = self.rate_limiter.allow(rate_limit_key(auth, client_host), operation)
        if decision.allowed:
            return Return.ok(decision)
        return Return.err(
            Error(
                "RATE_LIMITED",
                "Too many requests, please try again later.",
                {"retry_after": decision.retry_after, "limit": decision.limit},
            )
        )

    def authorize(self, auth: AuthContext, required: Iterable[Role]) -> Result[Role]:
        return rbac.authorize(auth.role, required)

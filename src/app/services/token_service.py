"""
Token Service

Issues, verifies and rotates credentials:
- access tokens: signed JWT, short-lived, carry user_id/email/role/session_id
- refresh tokens: opaque random strings, stored as SHA-256 hashes, one-time use

The service keeps no state of its own beyond the refresh token table.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError
from pydantic import ValidationError

from src.libs.result import Error, Result, Return
from src.api.utils.jwt import (
    ACCESS_TOKEN_TYPE,
    decode_access_token,
    generate_access_token,
    read_unverified_header,
)
from src.app.services.unit_of_work import UnitOfWork
from src.domain.auth import AccessClaims
from src.domain.base import generate_session_id, utcnow
from src.domain.entities import RefreshToken, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenSettings:
    secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)

    @classmethod
    def from_config(cls, config) -> "TokenSettings":
        return cls(
            secret=config.JWT_SECRET,
            algorithm=config.JWT_ALGORITHM,
            access_ttl=timedelta(seconds=config.ACCESS_TOKEN_TTL),
            refresh_ttl=timedelta(seconds=config.REFRESH_TOKEN_TTL),
        )


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    session_id: str
    user_id: UUID
    role: Role


def hash_refresh_token(refresh_token: str) -> str:
    return hashlib.sha256(refresh_token.encode()).hexdigest()


def verify_access_token(token: str, settings: TokenSettings) -> Result[AccessClaims]:
    """Stateless access token check, usable without a database session"""
    try:
        read_unverified_header(token)
    except JWTError:
        return Return.err(Error("MALFORMED", "Token is malformed"))

    try:
        payload = decode_access_token(
            token, secret=settings.secret, algorithm=settings.algorithm
        )
    except ExpiredSignatureError:
        return Return.err(Error("EXPIRED", "Token has expired"))
    except JWTError:
        return Return.err(Error("INVALID_SIGNATURE", "Token signature is invalid"))

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return Return.err(Error("MALFORMED", "Not an access token"))

    try:
        claims = AccessClaims(
            user_id=payload.get("user_id"),
            email=payload.get("email"),
            role=payload.get("role"),
            session_id=payload.get("session_id"),
            iat=payload.get("iat"),
            exp=payload.get("exp"),
        )
    except ValidationError:
        return Return.err(Error("MALFORMED", "Token claims are incomplete"))

    return Return.ok(claims)


class TokenService:
    """
    Business Rules:
    - Verification failures are terminal for the request, never retried
    - refresh() revokes the presented token before issuing the new pair
    - A refreshed access token keeps the original session_id
    - revoke() is idempotent
    """

    def __init__(
        self,
        uow: UnitOfWork,
        settings: TokenSettings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow = uow
        self.settings = settings
        self.clock = clock

    def _sign_access(self, user_id: UUID, email: str, role: Role, session_id: str) -> str:
        return generate_access_token(
            user_id,
            email,
            role.value,
            session_id,
            expires_delta=self.settings.access_ttl,
            secret=self.settings.secret,
            algorithm=self.settings.algorithm,
        )

    async def _store_refresh_token(self, user_id: UUID, session_id: str) -> str:
        refresh_token = secrets.token_urlsafe(32)
        await self.uow.refresh_tokens.create(
            RefreshToken(
                user_id=user_id,
                session_id=session_id,
                token_hash=hash_refresh_token(refresh_token),
                expires_at=self.clock() + self.settings.refresh_ttl,
            )
        )
        return refresh_token

    async def issue(
        self, user_id: UUID, email: str, role: Role, session_id: Optional[str] = None
    ) -> IssuedTokens:
        """
        Issue a fresh access/refresh pair for a new session.

        The caller creates the matching Session row with the returned session_id.
        """
        session_id = session_id or generate_session_id()
        async with self.uow:
            refresh_token = await self._store_refresh_token(user_id, session_id)
            await self.uow.commit()

        return IssuedTokens(
            access_token=self._sign_access(user_id, email, role, session_id),
            refresh_token=refresh_token,
            session_id=session_id,
            user_id=user_id,
            role=role,
        )

    def verify_access(self, token: str) -> Result[AccessClaims]:
        """
        Verify signature and expiry of an access token.

        Returns:
            Result with AccessClaims, or Error EXPIRED | INVALID_SIGNATURE | MALFORMED
        """
        return verify_access_token(token, self.settings)

    async def refresh(self, refresh_token: str) -> Result[IssuedTokens]:
        """
        Rotate a refresh token.

        Returns:
            Result with the new pair (same session_id), or Error
            NOT_FOUND | REVOKED | EXPIRED
        """
        async with self.uow:
            stored = await self.uow.refresh_tokens.get_by_hash(
                hash_refresh_token(refresh_token)
            )
            if stored is None:
                return Return.err(Error("NOT_FOUND", "Refresh token not found"))

            if stored.revoked:
                logger.warning(
                    f"Revoked refresh token presented for session {stored.session_id}"
                )
                return Return.err(Error("REVOKED", "Refresh token has been revoked"))

            now = self.clock()
            if now > stored.expires_at:
                return Return.err(Error("EXPIRED", "Refresh token has expired"))

            # Lost a concurrent rotation of the same token
            if not await self.uow.refresh_tokens.revoke_if_active(stored.id, now):
                return Return.err(Error("REVOKED", "Refresh token has been revoked"))

            user = await self.uow.users.get_by_id(stored.user_id)
            if user is None:
                return Return.err(Error("NOT_FOUND", "User not found"))

            new_refresh_token = await self._store_refresh_token(user.id, stored.session_id)
            await self.uow.commit()

        return Return.ok(
            IssuedTokens(
                access_token=self._sign_access(user.id, user.email, user.role, stored.session_id),
                refresh_token=new_refresh_token,
                session_id=stored.session_id,
                user_id=user.id,
                role=user.role,
            )
        )

    async def revoke(self, refresh_token: str) -> bool:
        """Mark a refresh token revoked. Unknown or already revoked tokens are a no-op."""
        async with self.uow:
            stored = await self.uow.refresh_tokens.get_by_hash(
                hash_refresh_token(refresh_token)
            )
            if stored is None:
                return False
            revoked = await self.uow.refresh_tokens.revoke_if_active(stored.id, self.clock())
            await self.uow.commit()
            return revoked

    async def revoke_for_sessions(self, session_ids: List[str]) -> int:
        """Revoke every active refresh token bound to the given sessions"""
        if not session_ids:
            return 0
        async with self.uow:
            count = await self.uow.refresh_tokens.revoke_by_session_ids(
                session_ids, self.clock()
            )
            await self.uow.commit()
            return count

from datetime import UTC, datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import jwt

from config import ApplicationConfig

ACCESS_TOKEN_TYPE = "access"


def generate_access_token(
    user_id: UUID,
    email: str,
    role: str,
    session_id: str,
    expires_delta: Optional[timedelta] = None,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> str:
    """
    Generate JWT access token

    Args:
        user_id: User UUID
        email: User email
        role: User role (STARTER, PRO)
        session_id: Session the token is bound to
        expires_delta: Token lifetime (defaults to ACCESS_TOKEN_TTL)
        secret: Signing key (defaults to JWT_SECRET)
        algorithm: Signing algorithm (defaults to JWT_ALGORITHM)

    Returns:
        JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(seconds=ApplicationConfig.ACCESS_TOKEN_TTL)
    now = datetime.now(UTC)
    payload = {
        "user_id": str(user_id),
        "email": email,
        "role": role,
        "session_id": session_id,
        "type": ACCESS_TOKEN_TYPE,
        "exp": now + expires_delta,
        "iat": now,
    }
    return jwt.encode(
        payload,
        secret or ApplicationConfig.JWT_SECRET,
        algorithm=algorithm or ApplicationConfig.JWT_ALGORITHM,
    )


def decode_access_token(
    token: str, secret: Optional[str] = None, algorithm: Optional[str] = None
) -> dict:
    """
    Verify and decode JWT token

    Raises:
        jose.ExpiredSignatureError: token is past its exp claim
        jose.JWTError: bad signature, malformed token or claims
    """
    return jwt.decode(
        token,
        secret or ApplicationConfig.JWT_SECRET,
        algorithms=[algorithm or ApplicationConfig.JWT_ALGORITHM],
    )


def read_unverified_header(token: str) -> dict:
    """Parse the token header without verifying it. Raises JWTError if malformed."""
    return jwt.get_unverified_header(token)

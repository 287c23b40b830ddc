"""
Authentication value objects.

``AccessClaims`` is the decoded access-token claim set; ``AuthContext`` is the
identity handed from the request pipeline to every downstream call.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .entities.enums import Role


class AccessClaims(BaseModel):
    """Verified access token claims"""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    email: str
    role: Role
    session_id: str
    iat: datetime
    exp: datetime


class AuthContext(BaseModel):
    """Authenticated caller, built once per request by the pipeline"""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    email: str
    role: Role
    session_id: str

    @classmethod
    def from_claims(cls, claims: AccessClaims) -> "AuthContext":
        return cls(
            user_id=claims.user_id,
            email=claims.email,
            role=claims.role,
            session_id=claims.session_id,
        )

    @property
    def rate_limit_key(self) -> str:
        return f"user:{self.user_id}"

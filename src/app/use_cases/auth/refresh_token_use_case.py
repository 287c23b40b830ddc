"""
Refresh Token Use Case

Handles access token refresh with refresh token rotation for security.
"""

from src.libs.result import Result, Return
from src.app.services.token_service import TokenService
from .dtos import RefreshTokenResponse


class RefreshTokenUseCase:
    """
    Use case for refreshing access tokens.

    Business Rules:
    - Refresh token rotation: old token revoked, new token issued
    - Reusing a rotated token fails with REVOKED
    - The new access token keeps the same session_id; no Session row is
      created and the session limit is not consulted
    """

    def __init__(self, token_service: TokenService):
        self.token_service = token_service

    async def execute(self, refresh_token: str) -> Result[RefreshTokenResponse]:
        result = await self.token_service.refresh(refresh_token)
        if result.is_err():
            return result

        tokens = result.value
        return Return.ok(
            RefreshTokenResponse(
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                session_id=tokens.session_id,
            )
        )

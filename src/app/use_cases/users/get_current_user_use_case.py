"""
Get Current User Use Case

Loads the profile of the authenticated caller.
"""

from src.libs.result import Error, Result, Return
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.auth.dtos import UserInfo
from src.domain.auth import AuthContext


class GetCurrentUserUseCase:
    """
    Business Rules:
    - AuthContext comes from a verified token on a live session
    - The user row may have been removed since the token was issued
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, auth: AuthContext) -> Result[UserInfo]:
        async with self.uow:
            user = await self.uow.users.get_by_id(auth.user_id)
            if user is None:
                return Return.err(Error("USER_NOT_FOUND", "User not found"))
            return Return.ok(UserInfo.from_entity(user))

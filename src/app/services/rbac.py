"""
RBAC Gate

Pure role checks run after authentication and before any handler.
"""

from typing import FrozenSet, Iterable, Optional

from src.libs.result import Error, Result, Return
from src.domain.entities import Role

ANY_ROLE: FrozenSet[Role] = frozenset({Role.STARTER, Role.PRO})
PRO_ONLY: FrozenSet[Role] = frozenset({Role.PRO})


def allowed(role: Optional[Role], required: Iterable[Role]) -> bool:
    if role is None:
        return False
    return role in frozenset(required)


def authorize(role: Optional[Role], required: Iterable[Role]) -> Result[Role]:
    """
    Returns:
        Result with the caller's role, or Error FORBIDDEN carrying
        required_roles and actual_role
    """
    required = frozenset(required)
    if allowed(role, required):
        return Return.ok(role)

    required_names = sorted(r.value for r in required)
    return Return.err(
        Error(
            "FORBIDDEN",
            f"Access denied. Required role: {' or '.join(required_names)}",
            {
                "required_roles": required_names,
                "actual_role": role.value if role is not None else None,
            },
        )
    )

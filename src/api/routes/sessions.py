from fastapi import APIRouter, Depends, status

from src.api.error import raise_for_error
from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.session_store import SessionStore
from src.app.use_cases.sessions import (
    DeleteOtherSessionsResponse,
    DeleteOtherSessionsUseCase,
    DeleteSessionResponse,
    DeleteSessionUseCase,
    ListSessionsUseCase,
    SessionListResponse,
)
from src.depends import get_dispatcher, get_session_store, rate_limit, require_any_role
from src.domain.auth import AuthContext
from src.domain.entities import OperationClass

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.get("", status_code=status.HTTP_200_OK, response_model=SessionListResponse)
async def list_sessions(
    auth: AuthContext = Depends(require_any_role),
    session_store: SessionStore = Depends(get_session_store),
):
    """
    List Sessions

    All live sessions of the caller, oldest first, with the calling device
    flagged as is_current.
    """
    use_case = ListSessionsUseCase(session_store)
    result = await use_case.execute(auth)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_200_OK,
    response_model=DeleteSessionResponse,
    dependencies=[Depends(rate_limit(OperationClass.session_management))],
)
async def delete_session(
    session_id: str,
    auth: AuthContext = Depends(require_any_role),
    session_store: SessionStore = Depends(get_session_store),
    dispatcher: BroadcastDispatcher = Depends(get_dispatcher),
):
    """
    Log Out One Device

    The device holding the session receives force-logout(device-logout).
    Deleting a session that is already gone succeeds with deleted=false.

    Raises:
        - 401 Unauthorized: Missing/invalid token or expired session
        - 429 Too Many Requests: Session management rate limit exceeded
    """
    use_case = DeleteSessionUseCase(session_store, dispatcher)
    result = await use_case.execute(auth, session_id)

    if result.is_err():
        raise_for_error(result.error)

    return result.value


@router.delete(
    "",
    status_code=status.HTTP_200_OK,
    response_model=DeleteOtherSessionsResponse,
    dependencies=[Depends(rate_limit(OperationClass.session_management))],
)
async def delete_other_sessions(
    auth: AuthContext = Depends(require_any_role),
    session_store: SessionStore = Depends(get_session_store),
    dispatcher: BroadcastDispatcher = Depends(get_dispatcher),
):
    """
    Log Out All Other Devices

    Keeps the calling session. Every other device receives
    force-logout(logout-all-devices).
    """
    use_case = DeleteOtherSessionsUseCase(session_store, dispatcher)
    result = await use_case.execute(auth)

    if result.is_err():
        raise_for_error(result.error)

    return result.value

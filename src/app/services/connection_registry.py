"""
Connection Registry

In-memory map from user id to the live push connections of that user's
devices. The map is never handed out; callers get immutable snapshots.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, Set, Tuple, Union
from uuid import UUID, uuid4

from src.domain.entities import ConnectionState

logger = logging.getLogger(__name__)


class PushChannel(Protocol):
    """Anything that can push JSON to one client, e.g. a Starlette WebSocket"""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass(eq=False)
class ConnectionHandle:
    user_id: str
    channel: PushChannel
    session_id: str  # session of the token presented at connect time
    id: str = field(default_factory=lambda: uuid4().hex)
    state: ConnectionState = ConnectionState.authenticated


class ConnectionRegistry:
    """
    Business Rules:
    - Only authenticated connections are registered
    - Several handles per user are normal (one per device/tab)
    - Membership changes and snapshots are serialized by one lock
    """

    def __init__(self):
        self._members: Dict[str, Set[ConnectionHandle]] = {}
        self._lock = asyncio.Lock()

    async def register(self, handle: ConnectionHandle) -> None:
        async with self._lock:
            self._members.setdefault(handle.user_id, set()).add(handle)
            handle.state = ConnectionState.open
            total = len(self._members[handle.user_id])
        logger.info(
            f"Connection {handle.id} registered for user {handle.user_id} "
            f"({total} live)"
        )

    async def unregister(self, handle: ConnectionHandle) -> bool:
        """Remove a handle. Returns False if it was already gone."""
        async with self._lock:
            handles = self._members.get(handle.user_id)
            if not handles or handle not in handles:
                return False
            handles.discard(handle)
            if not handles:
                del self._members[handle.user_id]
            handle.state = ConnectionState.closed
        logger.info(f"Connection {handle.id} unregistered for user {handle.user_id}")
        return True

    async def handles_for(self, user_id: Union[UUID, str]) -> Tuple[ConnectionHandle, ...]:
        async with self._lock:
            return tuple(self._members.get(str(user_id), ()))

    async def user_ids(self) -> Tuple[str, ...]:
        async with self._lock:
            return tuple(self._members)

    async def count(self, user_id: Union[UUID, str, None] = None) -> int:
        async with self._lock:
            if user_id is not None:
                return len(self._members.get(str(user_id), ()))
            return sum(len(handles) for handles in self._members.values())

"""
Broadcast Dispatcher

Fans push events out to every live connection of a user. Each send runs as
its own task with its own timeout; a connection that fails or stalls is
dropped from the registry instead of failing the caller.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from src.app.services.connection_registry import ConnectionHandle, ConnectionRegistry
from src.domain.entities import ForceLogoutReason
from src.domain.events import (
    ForceLogoutEvent,
    HeartbeatEvent,
    PushEvent,
    SessionUpdateEvent,
)

logger = logging.getLogger(__name__)

WS_CLOSE_GOING_AWAY = 1001


class BroadcastDispatcher:
    def __init__(self, registry: ConnectionRegistry, send_timeout: float = 2.0):
        self.registry = registry
        self.send_timeout = send_timeout

    async def _send(self, handle: ConnectionHandle, message: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(handle.channel.send_json(message), self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Send to connection {handle.id} timed out after {self.send_timeout}s"
            )
        except Exception as exc:
            logger.warning(f"Send to connection {handle.id} failed: {exc!r}")
        return False

    async def _drop(self, handle: ConnectionHandle) -> None:
        if await self.registry.unregister(handle):
            logger.info(f"Dropped dead connection {handle.id} for user {handle.user_id}")
        # Peer is already unreachable; closing is a courtesy
        with suppress(Exception):
            await asyncio.wait_for(
                handle.channel.close(code=WS_CLOSE_GOING_AWAY), self.send_timeout
            )

    async def notify(self, user_id: Union[UUID, str], event: PushEvent) -> int:
        """
        Deliver event to all of the user's connections.

        Returns:
            Number of connections that received the event
        """
        handles = await self.registry.handles_for(user_id)
        if not handles:
            logger.debug(f"No live connections for user {user_id}, {event.type.value} not sent")
            return 0

        message = event.to_message()
        results = await asyncio.gather(*(self._send(handle, message) for handle in handles))

        dead = [handle for handle, ok in zip(handles, results) if not ok]
        for handle in dead:
            await self._drop(handle)

        delivered = len(handles) - len(dead)
        logger.info(
            f"Broadcast {event.type.value} to user {user_id}: "
            f"{delivered}/{len(handles)} delivered"
        )
        return delivered

    async def force_logout(
        self,
        user_id: Union[UUID, str],
        reason: ForceLogoutReason,
        message: Optional[str] = None,
        session_id: Optional[str] = None,
        session_ids: Optional[List[str]] = None,
        exclude_session_token: Optional[str] = None,
    ) -> int:
        event = ForceLogoutEvent(
            reason=reason,
            message=message or "",
            session_id=session_id,
            session_ids=session_ids,
            exclude_session_token=exclude_session_token,
        )
        return await self.notify(user_id, event)

    async def session_update(self, user_id: Union[UUID, str]) -> int:
        return await self.notify(user_id, SessionUpdateEvent())

    async def heartbeat(self, user_id: Union[UUID, str]) -> int:
        return await self.notify(user_id, HeartbeatEvent())

    async def heartbeat_all(self) -> int:
        delivered = 0
        for user_id in await self.registry.user_ids():
            delivered += await self.heartbeat(user_id)
        return delivered

    async def heartbeat_forever(self, interval: float) -> None:
        """Periodic heartbeat to every connection; dead ones get pruned on the way"""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.heartbeat_all()
            except Exception:
                logger.exception("Heartbeat round failed")

"""
Expiration Sweeper

Periodic background task that deletes sessions past their sliding deadline
and tells each affected user once per run.
"""

import asyncio
import logging
from collections import defaultdict
from typing import AsyncContextManager, Callable, Dict, List, Optional

from src.app.services.broadcast import BroadcastDispatcher
from src.app.services.session_store import SessionStore
from src.domain.entities import ForceLogoutReason

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """
    Business Rules:
    - Deletes in batches, each batch its own transaction
    - Stops between batches once shutdown is requested
    - One force-logout(session-expired) per affected user per run
    - Sessions already removed by a concurrent delete are skipped silently
    """

    def __init__(
        self,
        store_scope: Callable[[], AsyncContextManager[SessionStore]],
        dispatcher: BroadcastDispatcher,
        interval: float = 15 * 60,
        batch_size: int = 100,
    ):
        self.store_scope = store_scope
        self.dispatcher = dispatcher
        self.interval = interval
        self.batch_size = batch_size
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Dict[str, List[str]]:
        """
        Sweep expired sessions now.

        Returns:
            Deleted session ids grouped by user id
        """
        affected: Dict[str, List[str]] = defaultdict(list)

        while not self._stopping.is_set():
            async with self.store_scope() as store:
                deleted = await store.delete_expired(self.batch_size)
            for session in deleted:
                affected[str(session.user_id)].append(session.id)
            if len(deleted) < self.batch_size:
                break

        for user_id, session_ids in affected.items():
            await self.dispatcher.force_logout(
                user_id,
                ForceLogoutReason.session_expired,
                session_id=session_ids[0] if len(session_ids) == 1 else None,
                session_ids=session_ids,
            )
            await self.dispatcher.session_update(user_id)

        if affected:
            total = sum(len(ids) for ids in affected.values())
            logger.info(
                f"Expired sessions cleaned up: {total} session(s), "
                f"{len(affected)} user(s) notified"
            )
        else:
            logger.debug("No expired sessions to clean up")

        return dict(affected)

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.run_once()
            except Exception:
                logger.exception("Session cleanup run failed")

    def start(self) -> None:
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name="session-expiration-sweeper")
        logger.info(f"Session expiration sweeper started (every {self.interval}s)")

    async def stop(self, timeout: float = 5.0) -> None:
        """Request shutdown and wait for the current batch to finish"""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout)
        except asyncio.TimeoutError:
            # wait_for has already cancelled the task
            logger.warning("Sweeper did not stop in time, cancelled")
        self._task = None
        logger.info("Session expiration sweeper stopped")

import asyncio
import weakref
from typing import Union
from uuid import UUID


class UserLocks:
    """
    One asyncio.Lock per user id, created on demand.

    Serializes compound session mutations (evict-then-insert, read-then-delete)
    for a single user inside this process. Locks nobody holds are dropped.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, user_id: Union[UUID, str]) -> asyncio.Lock:
        key = str(user_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

"""In-process keyed locks for serializing critical sections."""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLock:
    """
    A family of asyncio locks addressed by key.

    Locks are created on first use and dropped once no coroutine holds or
    waits on them, so the table does not grow with every key ever seen.
    """

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


# Shared lock families. Keys: property_id, (property_id, check_in, check_out)
# and (booking_id, installment_number).
property_locks = KeyedLock()
availability_locks = KeyedLock()
installment_locks = KeyedLock()

"""Per-account serialization of billing mutations within a process.

Across processes the subscription row lock (SELECT ... FOR UPDATE) does the same job;
this registry keeps same-process writers from queueing on the database.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable


class AccountLockRegistry:
    """Hands out one asyncio.Lock per account and forgets it once nobody holds or awaits it."""

    def __init__(self):
        """Initialize an empty registry."""
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the account's lock for the duration of the block."""
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
        """Whether a mutation for the account is in flight."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


account_locks = AccountLockRegistry()

"""Per-user mutual exclusion for billing mutations."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class UserLockRegistry:
    """Hands out one ``asyncio.Lock`` per user id.

    A user's lock exists only while some coroutine holds or waits for it, so
    the registry does not grow with every user id ever seen.

    Locks are not reentrant: a coroutine holding a user's lock must not call
    another operation that acquires the same lock.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._claims: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._claims[user_id] = self._claims.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._claims[user_id] -= 1
            if not self._claims[user_id]:
                del self._claims[user_id]
                del self._locks[user_id]

    def is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

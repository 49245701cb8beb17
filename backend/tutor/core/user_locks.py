"""Per-user write serialization.

Every mutation of a user's records runs while holding that user's lock, so
read-check-then-write sequences (upserts, achievement checks, session close)
never interleave for the same user. Different users proceed in parallel.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class UserLockRegistry:
    """Lazily creates one asyncio.Lock per user id."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._registry_lock = asyncio.Lock()

    async def get_lock(self, user_id: str) -> asyncio.Lock:
        async with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[user_id] = lock
            return lock

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        """Hold the user's lock for the duration of the block."""
        lock = await self.get_lock(user_id)
        async with lock:
            yield

    def is_locked(self, user_id: str) -> bool:
        lock = self._locks.get(user_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


user_locks = UserLockRegistry()

"""Process-wide key/value cache backed by the `cache` table.

Entries expire lazily: a read past `expires_at` reports a miss, and rows are
only removed by `sweep_expired()` (run by the scheduler) or explicit clears.
All operations are serialized with an asyncio.Lock and run in their own
database session, independent of any request transaction.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutor.db.repositories import cache_repo

logger = logging.getLogger(__name__)


class CacheStore:
    """Async-safe TTL cache persisted in the relational store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._lock = asyncio.Lock()

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from tutor.db.database import async_session_factory

            self._session_factory = async_session_factory
        return self._session_factory

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a JSON-serializable value; without a TTL it never expires."""
        payload = json.dumps(value)
        async with self._lock:
            now = self._clock()
            expires_at = now + timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
            async with self._factory()() as db:
                await cache_repo.upsert_entry(db, key, payload, created_at=now, expires_at=expires_at)
                await db.commit()

    async def get(self, key: str) -> Any | None:
        """Value for `key`, or None when it is missing or expired."""
        async with self._lock:
            now = self._clock()
            async with self._factory()() as db:
                entry = await cache_repo.get_entry(db, key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= now:
            return None
        try:
            return json.loads(entry.value)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable cache value for key {key}")
            return None

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    async def delete(self, key: str) -> bool:
        async with self._lock:
            async with self._factory()() as db:
                removed = await cache_repo.delete_entry(db, key)
                await db.commit()
        return removed

    async def sweep_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        async with self._lock:
            now = self._clock()
            async with self._factory()() as db:
                removed = await cache_repo.delete_expired(db, now)
                await db.commit()
        if removed:
            logger.info(f"Swept {removed} expired cache entries")
        return removed

    async def clear_older_than(self, days: int) -> int:
        """Delete entries created more than `days` days ago, expired or not."""
        async with self._lock:
            cutoff = self._clock() - timedelta(days=days)
            async with self._factory()() as db:
                removed = await cache_repo.delete_created_before(db, cutoff)
                await db.commit()
        return removed

    async def clear_all(self) -> int:
        async with self._lock:
            async with self._factory()() as db:
                removed = await cache_repo.delete_all(db)
                await db.commit()
        logger.info(f"Cleared {removed} cache entries")
        return removed

    async def stats(self) -> dict[str, int]:
        async with self._lock:
            now = self._clock()
            async with self._factory()() as db:
                return await cache_repo.get_stats(db, now)


cache_store = CacheStore()

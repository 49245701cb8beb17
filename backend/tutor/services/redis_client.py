"""Redis client and the local backup slot.

The backup slot mirrors a browser local-storage slot: the latest snapshot
document under a fixed key and its write time under `<key>_timestamp`. Both
keys are written in one MULTI/EXEC transaction so readers never see a
snapshot paired with another snapshot's timestamp.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis

from tutor.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_pool: redis.ConnectionPool | None = None
_redis_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get Redis client instance (creates connection pool on first call)."""
    global _redis_pool, _redis_client

    if _redis_client is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=10,
        )
        _redis_client = redis.Redis(connection_pool=_redis_pool)
        logger.info("Redis connection pool initialized")

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None

    logger.info("Redis connection pool closed")


class BackupSlot:
    """Single-slot snapshot storage in Redis, optionally scoped per user."""

    def __init__(self, redis_client: redis.Redis, key: str | None = None):
        self.redis = redis_client
        self.key = key or settings.backup_slot_key

    def _data_key(self, user_id: str | None) -> str:
        return f"{self.key}:{user_id}" if user_id else self.key

    def _timestamp_key(self, user_id: str | None) -> str:
        return f"{self._data_key(user_id)}_timestamp"

    async def save(self, document: dict[str, Any], user_id: str | None = None) -> bool:
        """Replace the slot contents. Returns False (and logs) if Redis is unavailable."""
        written_at = datetime.now(timezone.utc).isoformat()
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(self._data_key(user_id), json.dumps(document, default=str))
                pipe.set(self._timestamp_key(user_id), written_at)
                await pipe.execute()
        except Exception:
            logger.error("Failed to save backup to slot %s", self._data_key(user_id), exc_info=True)
            return False

        logger.debug("Saved backup to slot %s at %s", self._data_key(user_id), written_at)
        return True

    async def load_latest(self, user_id: str | None = None) -> dict[str, Any] | None:
        """Latest snapshot document in the slot, or None when empty or unreadable."""
        try:
            raw = await self.redis.get(self._data_key(user_id))  # type: ignore[misc]
        except Exception:
            logger.error("Failed to load backup from slot %s", self._data_key(user_id), exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Backup slot %s holds unreadable JSON", self._data_key(user_id))
            return None

    async def last_backup_time(self, user_id: str | None = None) -> datetime | None:
        try:
            raw = await self.redis.get(self._timestamp_key(user_id))  # type: ignore[misc]
        except Exception:
            logger.debug("Backup timestamp lookup failed", exc_info=True)
            return None
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    async def clear(self, user_id: str | None = None) -> None:
        await self.redis.delete(self._data_key(user_id), self._timestamp_key(user_id))  # type: ignore[misc]
        logger.info("Cleared backup slot %s", self._data_key(user_id))


async def get_backup_slot() -> BackupSlot:
    """Get backup slot instance (dependency injection)."""
    redis_client = await get_redis()
    return BackupSlot(redis_client)

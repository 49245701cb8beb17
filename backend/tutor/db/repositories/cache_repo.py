"""Repository for the key/value cache table."""

import logging
from datetime import datetime

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError
from tutor.db.models import CacheEntry

logger = logging.getLogger(__name__)


async def get_entry(db: AsyncSession, key: str) -> CacheEntry | None:
    try:
        result = await db.execute(select(CacheEntry).where(CacheEntry.key == key))
        return result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_entry for key {key}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error reading cache key {key}: {e}")
        raise DatabaseError(f"Failed to read cache entry: {e}") from e


async def upsert_entry(
    db: AsyncSession,
    key: str,
    value: str,
    created_at: datetime,
    expires_at: datetime | None,
) -> CacheEntry:
    """Replace the value and expiry of a key, inserting it if missing."""
    try:
        result = await db.execute(select(CacheEntry).where(CacheEntry.key == key))
        entry = result.scalar_one_or_none()

        if entry is not None:
            entry.value = value
            entry.created_at = created_at
            entry.expires_at = expires_at
        else:
            entry = CacheEntry(key=key, value=value, created_at=created_at, expires_at=expires_at)
            db.add(entry)
        await db.flush()
        return entry
    except OperationalError as e:
        logger.error(f"Database connection error in upsert_entry for key {key}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error writing cache key {key}: {e}")
        raise DatabaseError(f"Failed to write cache entry: {e}") from e


async def delete_entry(db: AsyncSession, key: str) -> bool:
    try:
        result = await db.execute(delete(CacheEntry).where(CacheEntry.key == key))
        await db.flush()
        return result.rowcount > 0
    except OperationalError as e:
        logger.error(f"Database connection error in delete_entry for key {key}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error deleting cache key {key}: {e}")
        raise DatabaseError(f"Failed to delete cache entry: {e}") from e


async def delete_expired(db: AsyncSession, now: datetime) -> int:
    """Delete every entry with expires_at <= now."""
    try:
        result = await db.execute(
            delete(CacheEntry).where(
                CacheEntry.expires_at.is_not(None),
                CacheEntry.expires_at <= now,
            )
        )
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_expired: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error sweeping expired cache entries: {e}")
        raise DatabaseError(f"Failed to sweep cache: {e}") from e


async def delete_created_before(db: AsyncSession, cutoff: datetime) -> int:
    try:
        result = await db.execute(delete(CacheEntry).where(CacheEntry.created_at < cutoff))
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_created_before: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error clearing old cache entries: {e}")
        raise DatabaseError(f"Failed to clear old cache entries: {e}") from e


async def delete_all(db: AsyncSession) -> int:
    try:
        result = await db.execute(delete(CacheEntry))
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_all: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error clearing cache: {e}")
        raise DatabaseError(f"Failed to clear cache: {e}") from e


async def get_stats(db: AsyncSession, now: datetime) -> dict[str, int]:
    """Entry counts and total payload size."""
    try:
        total_result = await db.execute(
            select(func.count(CacheEntry.key), func.coalesce(func.sum(func.length(CacheEntry.value)), 0))
        )
        total, size = total_result.one()
        expired_result = await db.execute(
            select(func.count(CacheEntry.key)).where(
                CacheEntry.expires_at.is_not(None),
                CacheEntry.expires_at <= now,
            )
        )
        expired = expired_result.scalar_one()
        live_result = await db.execute(
            select(func.count(CacheEntry.key)).where(
                or_(CacheEntry.expires_at.is_(None), CacheEntry.expires_at > now)
            )
        )
        return {
            "total_entries": int(total),
            "expired_entries": int(expired),
            "live_entries": int(live_result.scalar_one()),
            "total_size": int(size),
        }
    except OperationalError as e:
        logger.error(f"Database connection error in get_stats: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error computing cache stats: {e}")
        raise DatabaseError(f"Failed to compute cache stats: {e}") from e

"""Repository for per-user character mistake patterns."""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import MistakePattern

logger = logging.getLogger(__name__)


async def upsert_pattern(
    db: AsyncSession,
    user_id: str,
    pattern_type: str,
    from_char: str,
    to_char: str,
    word_context: str | None = None,
    now: datetime | None = None,
) -> MistakePattern:
    """Insert or increment frequency for a user's mistake pattern."""
    now = now or datetime.utcnow()
    try:
        result = await db.execute(
            select(MistakePattern).where(
                MistakePattern.user_id == user_id,
                MistakePattern.pattern_type == pattern_type,
                MistakePattern.from_char == from_char,
                MistakePattern.to_char == to_char,
            )
        )
        pattern = result.scalar_one_or_none()

        if pattern is not None:
            pattern.frequency += 1
            pattern.last_occurrence = now
            await db.flush()
            return pattern

        pattern = MistakePattern(
            user_id=user_id,
            pattern_type=pattern_type,
            from_char=from_char,
            to_char=to_char,
            word_context=word_context,
            frequency=1,
            first_occurrence=now,
            last_occurrence=now,
        )
        db.add(pattern)
        await db.flush()
        return pattern
    except IntegrityError as e:
        logger.error(f"Integrity error upserting mistake pattern for user {user_id}: {e}")
        raise DuplicateRecordError(f"Failed to upsert mistake pattern for user {user_id}") from e
    except OperationalError as e:
        logger.error(f"Database connection error in upsert_pattern for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error upserting mistake pattern for user {user_id}: {e}")
        raise DatabaseError(f"Failed to upsert mistake pattern: {e}") from e


async def get_top_patterns(db: AsyncSession, user_id: str, limit: int = 10) -> list[MistakePattern]:
    """Get top N most frequent mistake patterns for a user."""
    try:
        result = await db.execute(
            select(MistakePattern)
            .where(MistakePattern.user_id == user_id)
            .order_by(MistakePattern.frequency.desc(), MistakePattern.last_occurrence.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in get_top_patterns for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting top patterns for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get top patterns: {e}") from e


async def get_common_mistakes(db: AsyncSession, user_id: str, limit: int = 20) -> list[dict]:
    """Frequency summed per (from_char, to_char, pattern_type), highest first."""
    try:
        total = func.sum(MistakePattern.frequency).label("total_frequency")
        result = await db.execute(
            select(
                MistakePattern.from_char,
                MistakePattern.to_char,
                MistakePattern.pattern_type,
                total,
            )
            .where(MistakePattern.user_id == user_id)
            .group_by(MistakePattern.from_char, MistakePattern.to_char, MistakePattern.pattern_type)
            .order_by(total.desc())
            .limit(limit)
        )
        return [
            {
                "from_char": row.from_char,
                "to_char": row.to_char,
                "pattern_type": row.pattern_type,
                "total_frequency": int(row.total_frequency or 0),
            }
            for row in result.all()
        ]
    except OperationalError as e:
        logger.error(f"Database connection error in get_common_mistakes for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting common mistakes for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get common mistakes: {e}") from e


async def list_patterns(db: AsyncSession, user_id: str | None = None) -> list[MistakePattern]:
    try:
        stmt = select(MistakePattern)
        if user_id is not None:
            stmt = stmt.where(MistakePattern.user_id == user_id)
        result = await db.execute(stmt.order_by(MistakePattern.id))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_patterns for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing patterns for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list mistake patterns: {e}") from e


async def delete_patterns_before(db: AsyncSession, user_id: str, cutoff: datetime) -> int:
    """Delete patterns whose last occurrence is older than the cutoff."""
    try:
        result = await db.execute(
            delete(MistakePattern).where(
                MistakePattern.user_id == user_id,
                MistakePattern.last_occurrence < cutoff,
            )
        )
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_patterns_before for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error cleaning patterns for user {user_id}: {e}")
        raise DatabaseError(f"Failed to clean up mistake patterns: {e}") from e


async def import_pattern(db: AsyncSession, data: dict) -> MistakePattern:
    """Upsert a snapshot pattern by its natural key, overwriting counters and timestamps."""
    try:
        result = await db.execute(
            select(MistakePattern).where(
                MistakePattern.user_id == data["user_id"],
                MistakePattern.pattern_type == data["pattern_type"],
                MistakePattern.from_char == data["from_char"],
                MistakePattern.to_char == data["to_char"],
            )
        )
        pattern = result.scalar_one_or_none()

        if pattern is None:
            pattern = MistakePattern(
                user_id=data["user_id"],
                pattern_type=data["pattern_type"],
                from_char=data["from_char"],
                to_char=data["to_char"],
            )
            db.add(pattern)
        pattern.word_context = data.get("word_context")
        pattern.frequency = data["frequency"]
        pattern.first_occurrence = data["first_occurrence"]
        pattern.last_occurrence = data["last_occurrence"]
        await db.flush()
        return pattern
    except IntegrityError as e:
        logger.error(f"Integrity error importing mistake pattern: {e}")
        raise DuplicateRecordError("Failed to import mistake pattern") from e
    except OperationalError as e:
        logger.error(f"Database connection error in import_pattern: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error importing mistake pattern: {e}")
        raise DatabaseError(f"Failed to import mistake pattern: {e}") from e

"""Repository for per-word mastery records."""

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import WordMastery

logger = logging.getLogger(__name__)

MASTERY_FIELDS = (
    "category",
    "correct_count",
    "wrong_count",
    "total_seen",
    "last_seen_at",
    "mastery_level",
    "comprehension_correct",
    "comprehension_wrong",
)


async def get_word(db: AsyncSession, user_id: str, word: str) -> WordMastery | None:
    """Get the record for an exact (case-preserving) word."""
    try:
        result = await db.execute(
            select(WordMastery).where(
                WordMastery.user_id == user_id,
                WordMastery.word == word,
            )
        )
        return result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_word for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting word '{word}' for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get word mastery: {e}") from e


async def create_word(db: AsyncSession, user_id: str, word: str, category: str) -> WordMastery:
    """Insert a zeroed record for a word seen for the first time."""
    try:
        record = WordMastery(
            user_id=user_id,
            word=word,
            category=category,
            correct_count=0,
            wrong_count=0,
            total_seen=0,
            last_seen_at=None,
            mastery_level="new",
            comprehension_correct=0,
            comprehension_wrong=0,
        )
        db.add(record)
        await db.flush()
        return record
    except IntegrityError as e:
        logger.error(f"Duplicate word '{word}' for user {user_id}: {e}")
        raise DuplicateRecordError(f"Word '{word}' already tracked") from e
    except OperationalError as e:
        logger.error(f"Database connection error in create_word for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error creating word '{word}' for user {user_id}: {e}")
        raise DatabaseError(f"Failed to create word mastery: {e}") from e


async def save_word(db: AsyncSession, record: WordMastery) -> WordMastery:
    """Flush pending changes on a loaded record."""
    try:
        await db.flush()
        return record
    except OperationalError as e:
        logger.error(f"Database connection error in save_word for user {record.user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error saving word '{record.word}' for user {record.user_id}: {e}")
        raise DatabaseError(f"Failed to save word mastery: {e}") from e


async def list_words(
    db: AsyncSession,
    user_id: str | None = None,
    levels: tuple[str, ...] | None = None,
) -> list[WordMastery]:
    """List records, optionally filtered to the given mastery levels."""
    try:
        stmt = select(WordMastery)
        if user_id is not None:
            stmt = stmt.where(WordMastery.user_id == user_id)
        if levels:
            stmt = stmt.where(WordMastery.mastery_level.in_(levels))
        result = await db.execute(stmt.order_by(WordMastery.word))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_words for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing words for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list word mastery: {e}") from e


async def list_needs_practice(db: AsyncSession, user_id: str) -> list[WordMastery]:
    """Words still being learned or ever typed wrong, most-wrong first."""
    try:
        result = await db.execute(
            select(WordMastery)
            .where(
                WordMastery.user_id == user_id,
                or_(WordMastery.mastery_level == "learning", WordMastery.wrong_count > 0),
            )
            .order_by(WordMastery.wrong_count.desc(), WordMastery.word)
        )
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_needs_practice for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing words needing practice for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list words needing practice: {e}") from e


async def count_by_level(db: AsyncSession, user_id: str) -> dict[str, int]:
    try:
        result = await db.execute(
            select(WordMastery.mastery_level, func.count())
            .where(WordMastery.user_id == user_id)
            .group_by(WordMastery.mastery_level)
        )
        return {level: count for level, count in result.all()}
    except OperationalError as e:
        logger.error(f"Database connection error in count_by_level for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error counting words for user {user_id}: {e}")
        raise DatabaseError(f"Failed to count word mastery: {e}") from e


async def delete_all_words(db: AsyncSession, user_id: str) -> int:
    """Bulk reset: remove every record for a user. Returns the number removed."""
    try:
        result = await db.execute(delete(WordMastery).where(WordMastery.user_id == user_id))
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_all_words for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error resetting words for user {user_id}: {e}")
        raise DatabaseError(f"Failed to reset word mastery: {e}") from e


async def upsert_word(db: AsyncSession, data: dict) -> WordMastery:
    """Insert or overwrite a record from a snapshot."""
    try:
        result = await db.execute(
            select(WordMastery).where(
                WordMastery.user_id == data["user_id"],
                WordMastery.word == data["word"],
            )
        )
        record = result.scalar_one_or_none()

        if record is None:
            record = WordMastery(user_id=data["user_id"], word=data["word"])
            db.add(record)
        for key in MASTERY_FIELDS:
            setattr(record, key, data.get(key))
        await db.flush()
        return record
    except IntegrityError as e:
        logger.error(f"Integrity error upserting word '{data.get('word')}': {e}")
        raise DuplicateRecordError(f"Failed to upsert word {data.get('word')}") from e
    except OperationalError as e:
        logger.error(f"Database connection error in upsert_word: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error upserting word '{data.get('word')}': {e}")
        raise DatabaseError(f"Failed to upsert word mastery: {e}") from e

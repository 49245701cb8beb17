"""Repository for learners' custom practice words."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError, RecordNotFoundError
from tutor.db.models import CustomWord

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"word", "category", "difficulty", "image_url", "pronunciation_url"}


async def add_word(
    db: AsyncSession,
    user_id: str,
    word: str,
    category: str | None = None,
    difficulty: str = "easy",
    image_url: str | None = None,
    pronunciation_url: str | None = None,
) -> CustomWord:
    try:
        custom = CustomWord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            word=word,
            category=category,
            difficulty=difficulty,
            image_url=image_url,
            pronunciation_url=pronunciation_url,
            times_practiced=0,
            created_at=datetime.utcnow(),
        )
        db.add(custom)
        await db.flush()
        return custom
    except IntegrityError as e:
        logger.error(f"Integrity error adding custom word for user {user_id}: {e}")
        raise DuplicateRecordError(f"Failed to add custom word '{word}'") from e
    except OperationalError as e:
        logger.error(f"Database connection error in add_word for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error adding custom word for user {user_id}: {e}")
        raise DatabaseError(f"Failed to add custom word: {e}") from e


async def get_word(db: AsyncSession, user_id: str, word_id: str) -> CustomWord:
    """Get one of the user's words; raises RecordNotFoundError when absent."""
    try:
        result = await db.execute(
            select(CustomWord).where(CustomWord.id == word_id, CustomWord.user_id == user_id)
        )
        custom = result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_word for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting custom word {word_id}: {e}")
        raise DatabaseError(f"Failed to get custom word: {e}") from e
    if custom is None:
        raise RecordNotFoundError("CustomWord", word_id)
    return custom


async def list_words(
    db: AsyncSession,
    user_id: str | None = None,
    category: str | None = None,
    difficulty: str | None = None,
) -> list[CustomWord]:
    """List words newest first, with optional category and difficulty filters."""
    try:
        stmt = select(CustomWord)
        if user_id is not None:
            stmt = stmt.where(CustomWord.user_id == user_id)
        if category is not None:
            stmt = stmt.where(CustomWord.category == category)
        if difficulty is not None:
            stmt = stmt.where(CustomWord.difficulty == difficulty)
        result = await db.execute(stmt.order_by(CustomWord.created_at.desc()))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_words for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing custom words for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list custom words: {e}") from e


async def update_word(db: AsyncSession, user_id: str, word_id: str, updates: dict) -> CustomWord:
    custom = await get_word(db, user_id, word_id)
    try:
        for key, value in updates.items():
            if key in _UPDATABLE_FIELDS:
                setattr(custom, key, value)
        await db.flush()
        return custom
    except OperationalError as e:
        logger.error(f"Database connection error in update_word for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error updating custom word {word_id}: {e}")
        raise DatabaseError(f"Failed to update custom word: {e}") from e


async def record_practice(db: AsyncSession, user_id: str, word_id: str) -> CustomWord:
    """Bump the practice counter and timestamp."""
    custom = await get_word(db, user_id, word_id)
    try:
        custom.times_practiced += 1
        custom.last_practiced_at = datetime.utcnow()
        await db.flush()
        return custom
    except OperationalError as e:
        logger.error(f"Database connection error in record_practice for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error recording practice for word {word_id}: {e}")
        raise DatabaseError(f"Failed to record practice: {e}") from e


async def delete_word(db: AsyncSession, user_id: str, word_id: str) -> None:
    custom = await get_word(db, user_id, word_id)
    try:
        await db.delete(custom)
        await db.flush()
    except OperationalError as e:
        logger.error(f"Database connection error in delete_word for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error deleting custom word {word_id}: {e}")
        raise DatabaseError(f"Failed to delete custom word: {e}") from e


async def get_words_needing_practice(db: AsyncSession, user_id: str, limit: int = 10) -> list[CustomWord]:
    """Least practised words first; never-practised words before the rest."""
    try:
        result = await db.execute(
            select(CustomWord)
            .where(CustomWord.user_id == user_id)
            .order_by(
                CustomWord.times_practiced.asc(),
                CustomWord.last_practiced_at.is_not(None),
                CustomWord.last_practiced_at.asc(),
            )
            .limit(limit)
        )
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in get_words_needing_practice for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting words needing practice for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get words needing practice: {e}") from e


async def upsert_word(db: AsyncSession, data: dict) -> CustomWord | None:
    """Insert or overwrite a custom word from a snapshot.

    Returns None, changing nothing, when the id already belongs to another user.
    """
    try:
        result = await db.execute(select(CustomWord).where(CustomWord.id == data["id"]))
        custom = result.scalar_one_or_none()

        if custom is not None and custom.user_id != data["user_id"]:
            logger.warning(f"Custom word {data['id']} is owned by another user; not overwriting")
            return None
        if custom is None:
            custom = CustomWord(id=data["id"], user_id=data["user_id"])
            db.add(custom)
        custom.word = data["word"]
        custom.category = data.get("category")
        custom.difficulty = data["difficulty"]
        custom.image_url = data.get("image_url")
        custom.pronunciation_url = data.get("pronunciation_url")
        custom.times_practiced = data["times_practiced"]
        custom.last_practiced_at = data.get("last_practiced_at")
        custom.created_at = data.get("created_at") or datetime.utcnow()
        await db.flush()
        return custom
    except IntegrityError as e:
        logger.error(f"Integrity error upserting custom word {data.get('id')}: {e}")
        raise DuplicateRecordError(f"Failed to upsert custom word {data.get('id')}") from e
    except OperationalError as e:
        logger.error(f"Database connection error in upsert_word: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error upserting custom word {data.get('id')}: {e}")
        raise DatabaseError(f"Failed to upsert custom word: {e}") from e

"""Repository for unlocked achievements (write-once rows)."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import Achievement

logger = logging.getLogger(__name__)


async def has_achievement(db: AsyncSession, user_id: str, achievement_id: str) -> bool:
    try:
        result = await db.execute(
            select(Achievement.id).where(
                Achievement.user_id == user_id,
                Achievement.id == achievement_id,
            )
        )
        return result.scalar_one_or_none() is not None
    except OperationalError as e:
        logger.error(f"Database connection error in has_achievement for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error checking achievement {achievement_id} for user {user_id}: {e}")
        raise DatabaseError(f"Failed to check achievement: {e}") from e


async def create_achievement(
    db: AsyncSession,
    user_id: str,
    achievement_id: str,
    title: str,
    description: str,
    icon: str,
    category: str,
    unlocked_at: datetime | None = None,
) -> Achievement:
    """Record an unlocked achievement."""
    try:
        achievement = Achievement(
            id=achievement_id,
            user_id=user_id,
            title=title,
            description=description,
            icon=icon,
            category=category,
            unlocked_at=unlocked_at or datetime.utcnow(),
        )
        db.add(achievement)
        await db.flush()
        return achievement
    except IntegrityError as e:
        logger.error(f"Duplicate achievement {achievement_id} for user {user_id}: {e}")
        raise DuplicateRecordError(f"Achievement {achievement_id} already unlocked") from e
    except OperationalError as e:
        logger.error(f"Database connection error in create_achievement for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error creating achievement {achievement_id} for user {user_id}: {e}")
        raise DatabaseError(f"Failed to create achievement: {e}") from e


async def list_achievements(db: AsyncSession, user_id: str | None = None) -> list[Achievement]:
    """Unlocked achievements, newest first; all users when user_id is None."""
    try:
        stmt = select(Achievement)
        if user_id is not None:
            stmt = stmt.where(Achievement.user_id == user_id)
        result = await db.execute(stmt.order_by(Achievement.unlocked_at.desc()))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_achievements for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing achievements for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list achievements: {e}") from e


async def insert_achievement_if_absent(db: AsyncSession, data: dict) -> bool:
    """Import an achievement unless it is already recorded. Returns True when written."""
    if await has_achievement(db, data["user_id"], data["id"]):
        return False
    await create_achievement(
        db,
        user_id=data["user_id"],
        achievement_id=data["id"],
        title=data["title"],
        description=data["description"],
        icon=data["icon"],
        category=data["category"],
        unlocked_at=data.get("unlocked_at"),
    )
    return True

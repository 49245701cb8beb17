"""Progress repository: the per-user summary row and dashboard aggregates."""

import logging
from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import PracticeSession, Progress

logger = logging.getLogger(__name__)


async def get_progress(db: AsyncSession, user_id: str) -> Progress | None:
    """Get the stored progress summary for a user."""
    try:
        result = await db.execute(select(Progress).where(Progress.user_id == user_id))
        return result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_progress for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting progress for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get progress: {e}") from e


async def upsert_progress(
    db: AsyncSession,
    user_id: str,
    current_level: str,
    total_sessions: int,
    total_words_typed: int,
    average_accuracy: float,
    average_wpm: float,
    streak: int,
    last_session_date: date | None,
) -> Progress:
    """Replace every field of the summary row, inserting it if missing."""
    values = {
        "current_level": current_level,
        "total_sessions": total_sessions,
        "total_words_typed": total_words_typed,
        "average_accuracy": average_accuracy,
        "average_wpm": average_wpm,
        "streak": streak,
        "last_session_date": last_session_date,
    }
    try:
        result = await db.execute(select(Progress).where(Progress.user_id == user_id))
        progress = result.scalar_one_or_none()

        if progress is not None:
            for key, value in values.items():
                setattr(progress, key, value)
            await db.flush()
            return progress

        progress = Progress(user_id=user_id, **values)
        db.add(progress)
        await db.flush()
        return progress
    except IntegrityError as e:
        logger.error(f"Integrity error upserting progress for user {user_id}: {e}")
        raise DuplicateRecordError(f"Failed to upsert progress for user {user_id}") from e
    except OperationalError as e:
        logger.error(f"Database connection error in upsert_progress for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error upserting progress for user {user_id}: {e}")
        raise DatabaseError(f"Failed to upsert progress: {e}") from e


async def list_progress(db: AsyncSession, user_id: str | None = None) -> list[Progress]:
    """Summary rows for one user, or all users when user_id is None."""
    try:
        stmt = select(Progress)
        if user_id is not None:
            stmt = stmt.where(Progress.user_id == user_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_progress: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing progress: {e}")
        raise DatabaseError(f"Failed to list progress: {e}") from e


async def get_performance_by_level(db: AsyncSession, user_id: str) -> list[dict[str, Any]]:
    """Aggregate closed sessions per level, most practised level first."""
    try:
        result = await db.execute(
            select(
                PracticeSession.level,
                func.count(PracticeSession.id).label("sessions"),
                func.avg(PracticeSession.accuracy).label("avg_accuracy"),
                func.avg(PracticeSession.words_per_minute).label("avg_wpm"),
                func.max(PracticeSession.accuracy).label("best_accuracy"),
                func.max(PracticeSession.words_per_minute).label("best_wpm"),
            )
            .where(
                PracticeSession.user_id == user_id,
                PracticeSession.end_time.is_not(None),
            )
            .group_by(PracticeSession.level)
            .order_by(func.count(PracticeSession.id).desc())
        )
        return [
            {
                "level": row.level,
                "sessions": row.sessions,
                "avg_accuracy": round(float(row.avg_accuracy or 0), 2),
                "avg_wpm": round(float(row.avg_wpm or 0), 2),
                "best_accuracy": float(row.best_accuracy or 0),
                "best_wpm": float(row.best_wpm or 0),
            }
            for row in result.all()
        ]
    except OperationalError as e:
        logger.error(f"Database connection error in get_performance_by_level for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error in get_performance_by_level for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get performance by level: {e}") from e

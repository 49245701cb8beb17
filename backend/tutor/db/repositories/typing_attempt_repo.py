"""Repository for typing attempts."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import PracticeSession, TypingAttempt

logger = logging.getLogger(__name__)

ATTEMPT_FIELDS = (
    "session_id",
    "exercise_id",
    "user_id",
    "expected_text",
    "typed_text",
    "is_correct",
    "time_taken",
    "wpm",
    "accuracy",
    "mistakes_count",
    "backspace_count",
    "hint_used",
)


async def create_attempt(db: AsyncSession, data: dict) -> TypingAttempt:
    """Persist one attempt; `data` carries the ATTEMPT_FIELDS plus optional id/timestamp."""
    try:
        attempt = TypingAttempt(
            id=data.get("id") or str(uuid.uuid4()),
            timestamp=data.get("timestamp") or datetime.utcnow(),
            **{key: data[key] for key in ATTEMPT_FIELDS},
        )
        db.add(attempt)
        await db.flush()
        return attempt
    except IntegrityError as e:
        logger.error(f"Integrity error recording attempt for user {data.get('user_id')}: {e}")
        raise DuplicateRecordError(f"Failed to record attempt {data.get('id')}") from e
    except OperationalError as e:
        logger.error(f"Database connection error in create_attempt for user {data.get('user_id')}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error recording attempt for user {data.get('user_id')}: {e}")
        raise DatabaseError(f"Failed to record attempt: {e}") from e


async def list_attempts(
    db: AsyncSession,
    user_id: str | None = None,
    since: datetime | None = None,
    limit: int | None = None,
) -> list[TypingAttempt]:
    """Attempts newest first, optionally for one user, after `since`, capped at `limit`."""
    try:
        stmt = select(TypingAttempt)
        if user_id is not None:
            stmt = stmt.where(TypingAttempt.user_id == user_id)
        if since is not None:
            stmt = stmt.where(TypingAttempt.timestamp >= since)
        stmt = stmt.order_by(TypingAttempt.timestamp.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_attempts for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing attempts for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list attempts: {e}") from e


async def insert_attempt_if_absent(db: AsyncSession, data: dict) -> bool:
    try:
        existing = await db.execute(select(TypingAttempt.id).where(TypingAttempt.id == data["id"]))
        found = existing.scalar_one_or_none() is not None
    except OperationalError as e:
        logger.error(f"Database connection error in insert_attempt_if_absent: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error checking attempt {data.get('id')}: {e}")
        raise DatabaseError(f"Failed to check attempt: {e}") from e
    if found:
        return False
    await create_attempt(db, data)
    return True


async def delete_orphaned_attempts(db: AsyncSession) -> int:
    """Remove attempts whose session no longer exists."""
    try:
        result = await db.execute(
            delete(TypingAttempt).where(
                TypingAttempt.session_id.not_in(select(PracticeSession.id))
            )
        )
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_orphaned_attempts: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error deleting orphaned attempts: {e}")
        raise DatabaseError(f"Failed to delete orphaned attempts: {e}") from e

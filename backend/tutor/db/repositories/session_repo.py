"""Repository for practice sessions."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import PracticeSession

logger = logging.getLogger(__name__)


async def create_session(
    db: AsyncSession,
    user_id: str,
    level: str,
    session_id: str | None = None,
    start_time: datetime | None = None,
) -> PracticeSession:
    """Open a new session (end_time stays null until it is closed)."""
    try:
        session = PracticeSession(
            id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            level=level,
            start_time=start_time or datetime.utcnow(),
            end_time=None,
            total_words=0,
            correct_words=0,
            accuracy=100.0,
            words_per_minute=0.0,
        )
        db.add(session)
        await db.flush()
        return session
    except IntegrityError as e:
        logger.error(f"Duplicate session {session_id} for user {user_id}: {e}")
        raise DuplicateRecordError(f"Session {session_id} already exists") from e
    except OperationalError as e:
        logger.error(f"Database connection error in create_session for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error creating session for user {user_id}: {e}")
        raise DatabaseError(f"Failed to create session: {e}") from e


async def get_session_by_id(db: AsyncSession, session_id: str) -> PracticeSession | None:
    """Get a session by ID."""
    try:
        result = await db.execute(select(PracticeSession).where(PracticeSession.id == session_id))
        return result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_session_by_id for session {session_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting session {session_id}: {e}")
        raise DatabaseError(f"Failed to get session: {e}") from e


async def close_session(
    db: AsyncSession,
    session: PracticeSession,
    end_time: datetime,
    total_words: int,
    correct_words: int,
    accuracy: float,
    words_per_minute: float,
) -> PracticeSession:
    """Write the final statistics of an open session."""
    try:
        session.end_time = end_time
        session.total_words = total_words
        session.correct_words = correct_words
        session.accuracy = accuracy
        session.words_per_minute = words_per_minute
        await db.flush()
        return session
    except OperationalError as e:
        logger.error(f"Database connection error in close_session for session {session.id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error closing session {session.id}: {e}")
        raise DatabaseError(f"Failed to close session: {e}") from e


async def get_closed_sessions(
    db: AsyncSession,
    user_id: str,
    since: datetime | None = None,
) -> list[PracticeSession]:
    """Closed sessions for a user, newest first, optionally only those started after `since`."""
    try:
        stmt = select(PracticeSession).where(
            PracticeSession.user_id == user_id,
            PracticeSession.end_time.is_not(None),
        )
        if since is not None:
            stmt = stmt.where(PracticeSession.start_time >= since)
        result = await db.execute(stmt.order_by(PracticeSession.start_time.desc()))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in get_closed_sessions for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting closed sessions for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get sessions: {e}") from e


async def list_sessions(
    db: AsyncSession,
    user_id: str | None = None,
    limit: int | None = None,
    closed_only: bool = False,
) -> list[PracticeSession]:
    """List sessions newest first; all users when user_id is None."""
    try:
        stmt = select(PracticeSession)
        if user_id is not None:
            stmt = stmt.where(PracticeSession.user_id == user_id)
        if closed_only:
            stmt = stmt.where(PracticeSession.end_time.is_not(None))
        stmt = stmt.order_by(PracticeSession.start_time.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_sessions for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing sessions for user {user_id}: {e}")
        raise DatabaseError(f"Failed to list sessions: {e}") from e


async def insert_session_if_absent(db: AsyncSession, data: dict) -> bool:
    """Insert a closed session from a snapshot unless its id already exists.

    Returns True when a row was written.
    """
    try:
        existing = await db.execute(select(PracticeSession.id).where(PracticeSession.id == data["id"]))
        if existing.scalar_one_or_none() is not None:
            return False

        db.add(
            PracticeSession(
                id=data["id"],
                user_id=data["user_id"],
                start_time=data["start_time"],
                end_time=data.get("end_time"),
                level=data["level"],
                total_words=data["total_words"],
                correct_words=data["correct_words"],
                accuracy=data["accuracy"],
                words_per_minute=data["words_per_minute"],
            )
        )
        await db.flush()
        return True
    except IntegrityError as e:
        logger.error(f"Integrity error importing session {data.get('id')}: {e}")
        raise DuplicateRecordError(f"Session {data.get('id')} already exists") from e
    except OperationalError as e:
        logger.error(f"Database connection error in insert_session_if_absent: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error importing session {data.get('id')}: {e}")
        raise DatabaseError(f"Failed to import session: {e}") from e


async def delete_sessions_before(db: AsyncSession, user_id: str, cutoff: datetime) -> int:
    """Delete a user's closed sessions that started before the cutoff. Returns the number removed."""
    try:
        result = await db.execute(
            delete(PracticeSession).where(
                PracticeSession.user_id == user_id,
                PracticeSession.end_time.is_not(None),
                PracticeSession.start_time < cutoff,
            )
        )
        await db.flush()
        return result.rowcount
    except OperationalError as e:
        logger.error(f"Database connection error in delete_sessions_before for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error deleting old sessions for user {user_id}: {e}")
        raise DatabaseError(f"Failed to delete sessions: {e}") from e

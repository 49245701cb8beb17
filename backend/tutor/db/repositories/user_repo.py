"""User repository."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError, RecordNotFoundError
from tutor.db.models import User

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "age", "avatar"}


async def get_all_user_ids(db: AsyncSession) -> list[str]:
    """Return all user IDs (lightweight, no full ORM objects loaded)."""
    try:
        result = await db.execute(select(User.id).order_by(User.created_at))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in get_all_user_ids: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error in get_all_user_ids: {e}")
        raise DatabaseError(f"Failed to get user IDs: {e}") from e


async def list_users(db: AsyncSession) -> list[User]:
    """Return every user, oldest first."""
    try:
        result = await db.execute(select(User).order_by(User.created_at))
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_users: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing users: {e}")
        raise DatabaseError(f"Failed to list users: {e}") from e


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by ID."""
    try:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_user_by_id for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting user {user_id}: {e}")
        raise DatabaseError(f"Failed to get user: {e}") from e


async def require_user(db: AsyncSession, user_id: str) -> User:
    """Get a user by ID, raising RecordNotFoundError when it does not exist."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise RecordNotFoundError("User", user_id)
    return user


async def create_user(
    db: AsyncSession,
    name: str,
    age: int | None = None,
    avatar: str | None = None,
    user_id: str | None = None,
) -> User:
    """Create a new learner profile."""
    try:
        user = User(
            id=user_id or str(uuid.uuid4()),
            name=name,
            age=age,
            avatar=avatar,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user
    except IntegrityError as e:
        logger.error(f"Duplicate user {user_id}: {e}")
        raise DuplicateRecordError(f"User {user_id} already exists") from e
    except OperationalError as e:
        logger.error(f"Database connection error in create_user: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error creating user: {e}")
        raise DatabaseError(f"Failed to create user: {e}") from e


async def update_user(db: AsyncSession, user_id: str, updates: dict) -> User:
    """Apply profile updates; unknown keys are ignored."""
    user = await require_user(db, user_id)
    try:
        for key, value in updates.items():
            if key in _UPDATABLE_FIELDS:
                setattr(user, key, value)
        await db.flush()
        await db.refresh(user)
        return user
    except OperationalError as e:
        logger.error(f"Database connection error in update_user for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error updating user {user_id}: {e}")
        raise DatabaseError(f"Failed to update user: {e}") from e


async def delete_user(db: AsyncSession, user_id: str) -> None:
    """Delete a user and, by cascade, everything they own."""
    user = await require_user(db, user_id)
    try:
        await db.delete(user)
        await db.flush()
    except OperationalError as e:
        logger.error(f"Database connection error in delete_user for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error deleting user {user_id}: {e}")
        raise DatabaseError(f"Failed to delete user: {e}") from e


async def upsert_user(db: AsyncSession, data: dict) -> User:
    """Insert or overwrite a user row from a snapshot record."""
    try:
        result = await db.execute(select(User).where(User.id == data["id"]))
        user = result.scalar_one_or_none()

        if user is not None:
            user.name = data["name"]
            user.age = data.get("age")
            user.avatar = data.get("avatar")
            if data.get("created_at") is not None:
                user.created_at = data["created_at"]
            await db.flush()
            return user

        user = User(
            id=data["id"],
            name=data["name"],
            age=data.get("age"),
            avatar=data.get("avatar"),
        )
        if data.get("created_at") is not None:
            user.created_at = data["created_at"]
        if data.get("updated_at") is not None:
            user.updated_at = data["updated_at"]
        db.add(user)
        await db.flush()
        return user
    except IntegrityError as e:
        logger.error(f"Integrity error upserting user {data.get('id')}: {e}")
        raise DuplicateRecordError(f"Failed to upsert user {data.get('id')}") from e
    except OperationalError as e:
        logger.error(f"Database connection error in upsert_user: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error upserting user {data.get('id')}: {e}")
        raise DatabaseError(f"Failed to upsert user: {e}") from e

"""Repository for user settings."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.exceptions import ConnectionError, DatabaseError, DuplicateRecordError
from tutor.db.models import UserSettings

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = (
    "theme",
    "font_size",
    "sound_enabled",
    "music_enabled",
    "reduced_motion",
    "dyslexic_font",
    "voice_gender",
    "voice_speed",
)

DEFAULT_SETTINGS = {
    "theme": "light",
    "font_size": "medium",
    "sound_enabled": True,
    "music_enabled": False,
    "reduced_motion": False,
    "dyslexic_font": False,
    "voice_gender": "neutral",
    "voice_speed": 1.0,
}


async def get_settings_by_user_id(db: AsyncSession, user_id: str) -> UserSettings | None:
    """Get settings for a user by user ID.

    Args:
        db: Database session
        user_id: User ID to fetch settings for

    Returns:
        UserSettings if found, None otherwise
    """
    try:
        result = await db.execute(
            select(UserSettings).where(UserSettings.user_id == user_id)
        )
        return result.scalar_one_or_none()
    except OperationalError as e:
        logger.error(f"Database connection error in get_settings_by_user_id for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error getting settings for user {user_id}: {e}")
        raise DatabaseError(f"Failed to get settings: {e}") from e


async def create_default_settings(db: AsyncSession, user_id: str) -> UserSettings:
    """Create default settings for a user."""
    try:
        settings = UserSettings(user_id=user_id, **DEFAULT_SETTINGS)
        db.add(settings)
        await db.flush()
        return settings
    except IntegrityError as e:
        logger.error(f"Duplicate settings for user {user_id}: {e}")
        raise DuplicateRecordError(f"Settings for user {user_id} already exist") from e
    except OperationalError as e:
        logger.error(f"Database connection error in create_default_settings: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error creating settings for user {user_id}: {e}")
        raise DatabaseError(f"Failed to create settings: {e}") from e


async def get_or_create_settings(db: AsyncSession, user_id: str) -> UserSettings:
    """Get settings for a user, creating defaults if they don't exist."""
    settings = await get_settings_by_user_id(db, user_id)
    if not settings:
        settings = await create_default_settings(db, user_id)
    return settings


async def update_settings(db: AsyncSession, user_id: str, updates: dict) -> UserSettings:
    """Update the provided settings fields, creating the row first if needed."""
    settings = await get_or_create_settings(db, user_id)
    try:
        for key, value in updates.items():
            if key in SETTINGS_FIELDS:
                setattr(settings, key, value)
        await db.flush()
        return settings
    except OperationalError as e:
        logger.error(f"Database connection error in update_settings for user {user_id}: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error updating settings for user {user_id}: {e}")
        raise DatabaseError(f"Failed to update settings: {e}") from e


async def reset_settings(db: AsyncSession, user_id: str) -> UserSettings:
    """Restore every setting to its default value."""
    return await update_settings(db, user_id, dict(DEFAULT_SETTINGS))


async def list_all_settings(db: AsyncSession, user_id: str | None = None) -> list[UserSettings]:
    """Return settings rows for one user, or for everyone when user_id is None."""
    try:
        stmt = select(UserSettings)
        if user_id is not None:
            stmt = stmt.where(UserSettings.user_id == user_id)
        result = await db.execute(stmt)
        return list(result.scalars().all())
    except OperationalError as e:
        logger.error(f"Database connection error in list_all_settings: {e}")
        raise ConnectionError("Database connection failed") from e
    except Exception as e:
        logger.error(f"Unexpected error listing settings: {e}")
        raise DatabaseError(f"Failed to list settings: {e}") from e

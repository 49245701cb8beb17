"""User profile and settings endpoints."""

from fastapi import APIRouter, HTTPException, status

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.db.repositories import settings_repo, user_repo
from tutor.models.envelope import success_response
from tutor.models.user import UserCreate, UserResponse, UserSettings, UserSettingsUpdate, UserUpdate

router = APIRouter()


def _assert_own_user(user_id: str, current_user: str) -> None:
    if user_id != current_user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_profile(
    body: UserCreate,
    current_user: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Create the learner profile for the authenticated user, with default settings."""
    async with locks.hold(current_user):
        user = await user_repo.create_user(
            db, name=body.name, age=body.age, avatar=body.avatar, user_id=current_user,
        )
        settings = await settings_repo.get_or_create_settings(db, current_user)
        await db.commit()
    return success_response({
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
        "settings": UserSettings.model_validate(settings).model_dump(by_alias=True),
    })


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    current_user: CurrentUserId,
    db: DbSession,
) -> dict:
    """Get user info and settings."""
    _assert_own_user(user_id, current_user)
    user = await user_repo.require_user(db, user_id)
    settings = await settings_repo.get_or_create_settings(db, user_id)
    return success_response({
        "user": UserResponse.model_validate(user).model_dump(mode="json"),
        "settings": UserSettings.model_validate(settings).model_dump(by_alias=True),
    })


@router.patch("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    current_user: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    _assert_own_user(user_id, current_user)
    async with locks.hold(user_id):
        user = await user_repo.update_user(db, user_id, body.model_dump(exclude_unset=True))
        await db.commit()
    return success_response(UserResponse.model_validate(user).model_dump(mode="json"))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_user: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> None:
    """Delete the profile and everything it owns."""
    _assert_own_user(user_id, current_user)
    async with locks.hold(user_id):
        await user_repo.delete_user(db, user_id)
        await db.commit()


@router.get("/{user_id}/settings")
async def get_settings(
    user_id: str,
    current_user: CurrentUserId,
    db: DbSession,
) -> dict:
    """Get user settings only."""
    _assert_own_user(user_id, current_user)
    await user_repo.require_user(db, user_id)
    settings = await settings_repo.get_or_create_settings(db, user_id)
    return success_response(UserSettings.model_validate(settings).model_dump(by_alias=True))


@router.put("/{user_id}/settings")
async def update_settings(
    user_id: str,
    body: UserSettingsUpdate,
    current_user: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Update presentation settings; omitted fields are left alone."""
    _assert_own_user(user_id, current_user)
    await user_repo.require_user(db, user_id)
    async with locks.hold(user_id):
        settings = await settings_repo.update_settings(db, user_id, body.model_dump(exclude_unset=True))
        await db.commit()
    return success_response(UserSettings.model_validate(settings).model_dump(by_alias=True))


@router.post("/{user_id}/settings/reset")
async def reset_settings(
    user_id: str,
    current_user: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    _assert_own_user(user_id, current_user)
    await user_repo.require_user(db, user_id)
    async with locks.hold(user_id):
        settings = await settings_repo.reset_settings(db, user_id)
        await db.commit()
    return success_response(UserSettings.model_validate(settings).model_dump(by_alias=True))

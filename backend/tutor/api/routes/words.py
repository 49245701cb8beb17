"""Custom practice word endpoints."""

from typing import Literal

from fastapi import APIRouter, Query, status

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.db.repositories import custom_word_repo
from tutor.models.envelope import success_response
from tutor.models.user import CustomWordCreate, CustomWordResponse, CustomWordUpdate

router = APIRouter()


def _dump(word) -> dict:
    return CustomWordResponse.model_validate(word).model_dump(mode="json")


@router.get("")
async def list_words(
    user_id: CurrentUserId,
    db: DbSession,
    category: str | None = None,
    difficulty: Literal["easy", "medium", "hard"] | None = None,
) -> dict:
    words = await custom_word_repo.list_words(db, user_id, category=category, difficulty=difficulty)
    return success_response([_dump(w) for w in words], count=len(words))


@router.get("/needing-practice")
async def words_needing_practice(
    user_id: CurrentUserId,
    db: DbSession,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    """Least practised words first."""
    words = await custom_word_repo.get_words_needing_practice(db, user_id, limit)
    return success_response([_dump(w) for w in words])


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_word(
    body: CustomWordCreate,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        word = await custom_word_repo.add_word(db, user_id, **body.model_dump())
        await db.commit()
    return success_response(_dump(word))


@router.put("/{word_id}")
async def update_word(
    word_id: str,
    body: CustomWordUpdate,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        word = await custom_word_repo.update_word(db, user_id, word_id, body.model_dump(exclude_unset=True))
        await db.commit()
    return success_response(_dump(word))


@router.post("/{word_id}/practice")
async def record_practice(
    word_id: str,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        word = await custom_word_repo.record_practice(db, user_id, word_id)
        await db.commit()
    return success_response(_dump(word))


@router.delete("/{word_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_word(
    word_id: str,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> None:
    async with locks.hold(user_id):
        await custom_word_repo.delete_word(db, user_id, word_id)
        await db.commit()

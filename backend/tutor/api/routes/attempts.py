"""Typing attempt endpoints."""

from fastapi import APIRouter, Query, status

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.core.mistake_patterns import mistake_aggregator
from tutor.core.progress import progress_calculator
from tutor.db.exceptions import RecordNotFoundError
from tutor.db.repositories import session_repo, typing_attempt_repo
from tutor.models.envelope import success_response
from tutor.models.session import TypingAttemptCreate, TypingAttemptResponse

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_attempt(
    body: TypingAttemptCreate,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Store an attempt; mistakes feed the pattern aggregator."""
    session = await session_repo.get_session_by_id(db, body.session_id)
    if session is None or session.user_id != user_id:
        raise RecordNotFoundError("Session", body.session_id)

    data = body.model_dump(exclude={"word_category"})
    data["user_id"] = user_id
    async with locks.hold(user_id):
        attempt = await mistake_aggregator.record_attempt(data, db, word_category=body.word_category)
        await db.commit()
    return success_response(TypingAttemptResponse.model_validate(attempt).model_dump(mode="json"))


@router.get("")
async def list_attempts(
    user_id: CurrentUserId,
    db: DbSession,
    limit: int = Query(default=100, ge=1, le=1000),
) -> dict:
    attempts = await typing_attempt_repo.list_attempts(db, user_id, limit=limit)
    return success_response(
        [TypingAttemptResponse.model_validate(a).model_dump(mode="json") for a in attempts],
        count=len(attempts),
    )


@router.get("/stats")
async def attempt_stats(
    user_id: CurrentUserId,
    db: DbSession,
    days: int = Query(default=30, ge=1, le=365),
) -> dict:
    stats = await progress_calculator.attempt_stats(user_id, db, days=days)
    return success_response(stats, period_days=days)

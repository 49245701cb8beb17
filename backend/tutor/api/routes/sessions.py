"""Practice session endpoints."""

from fastapi import APIRouter, Query, status

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.core.achievements import achievement_engine
from tutor.core.progress import progress_calculator
from tutor.db.exceptions import RecordNotFoundError
from tutor.db.repositories import session_repo, user_repo
from tutor.models.envelope import success_response
from tutor.models.progress import AchievementResponse, ProgressResponse, SessionCloseResult
from tutor.models.session import SessionEnd, SessionResponse, SessionStart

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def start_session(
    body: SessionStart,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Open a new practice session."""
    await user_repo.require_user(db, user_id)
    async with locks.hold(user_id):
        session = await progress_calculator.start_session(
            user_id, body.level, db, session_id=body.session_id,
        )
        await db.commit()
    return success_response(SessionResponse.model_validate(session).model_dump(mode="json"))


@router.post("/{session_id}/end")
async def end_session(
    session_id: str,
    body: SessionEnd,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Close a session, refresh progress and unlock any achievements it earned."""
    async with locks.hold(user_id):
        await progress_calculator.end_session(session_id, body.model_dump(), db, user_id=user_id)
        progress = await progress_calculator.get_summary(user_id, db)
        unlocked = await achievement_engine.check(user_id, db)
        await db.commit()

    result = SessionCloseResult(
        session_id=session_id,
        progress=ProgressResponse.model_validate(progress),
        new_achievements=[AchievementResponse.model_validate(a) for a in unlocked],
    )
    return success_response(result.model_dump(mode="json"))


@router.get("")
async def list_sessions(
    user_id: CurrentUserId,
    db: DbSession,
    limit: int = Query(default=50, ge=1, le=500),
) -> dict:
    sessions = await session_repo.list_sessions(db, user_id, limit=limit)
    return success_response(
        [SessionResponse.model_validate(s).model_dump(mode="json") for s in sessions],
        count=len(sessions),
    )


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    user_id: CurrentUserId,
    db: DbSession,
) -> dict:
    session = await session_repo.get_session_by_id(db, session_id)
    if session is None or session.user_id != user_id:
        raise RecordNotFoundError("Session", session_id)
    return success_response(SessionResponse.model_validate(session).model_dump(mode="json"))

"""Progress summary and analytics endpoints."""

from fastapi import APIRouter, Query

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.core.achievements import achievement_engine
from tutor.core.progress import progress_calculator
from tutor.models.envelope import success_response
from tutor.models.progress import AchievementResponse, ProgressResponse

router = APIRouter()


@router.get("")
async def get_progress(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Get the progress summary (computed on first access)."""
    async with locks.hold(user_id):
        progress = await progress_calculator.get_summary(user_id, db)
        await db.commit()
    return success_response(ProgressResponse.model_validate(progress).model_dump(mode="json"))


@router.post("/recompute")
async def recompute_progress(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        progress = await progress_calculator.recompute(user_id, db)
        await db.commit()
    return success_response(ProgressResponse.model_validate(progress).model_dump(mode="json"))


@router.get("/improvement")
async def get_improvement_rate(
    user_id: CurrentUserId,
    db: DbSession,
    days: int = Query(default=30, ge=2, le=365),
) -> dict:
    """Accuracy change (%) of the newer half of the window over the older half."""
    rate = await progress_calculator.improvement_rate(user_id, db, window_days=days)
    return success_response({"improvement_rate": rate}, period_days=days)


@router.get("/trends")
async def get_typing_trends(
    user_id: CurrentUserId,
    db: DbSession,
    days: int = Query(default=30, ge=1, le=365),
) -> dict:
    trends = await progress_calculator.typing_trends(user_id, db, days=days)
    return success_response(trends, period_days=days)


@router.get("/levels")
async def get_performance_by_level(user_id: CurrentUserId, db: DbSession) -> dict:
    levels = await progress_calculator.performance_by_level(user_id, db)
    return success_response(levels)


@router.get("/practice-time")
async def get_practice_time(user_id: CurrentUserId, db: DbSession) -> dict:
    stats = await progress_calculator.practice_time_stats(user_id, db)
    return success_response(stats)


@router.get("/achievements")
async def get_achievements(user_id: CurrentUserId, db: DbSession) -> dict:
    """Unlocked achievements, newest first."""
    achievements = await achievement_engine.list_achievements(user_id, db)
    return success_response(
        [AchievementResponse.model_validate(a).model_dump(mode="json") for a in achievements],
        count=len(achievements),
    )


@router.post("/achievements/check")
async def check_achievements(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Unlock any achievements the current summary satisfies."""
    async with locks.hold(user_id):
        unlocked = await achievement_engine.check(user_id, db)
        await db.commit()
    return success_response(
        [AchievementResponse.model_validate(a).model_dump(mode="json") for a in unlocked],
        count=len(unlocked),
    )

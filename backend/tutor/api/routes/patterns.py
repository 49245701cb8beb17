"""Mistake pattern endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Query

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.core.mistake_patterns import compare, mistake_aggregator
from tutor.models.envelope import success_response
from tutor.models.progress import CommonMistake, CompareRequest, MistakePatternResponse

router = APIRouter()


@router.post("/compare")
async def compare_text(body: CompareRequest) -> dict:
    """Diff two strings without recording anything."""
    mismatches = compare(body.expected, body.typed)
    return success_response(
        [{**asdict(m), "pattern_type": m.pattern_type.value} for m in mismatches],
        count=len(mismatches),
    )


@router.post("/analyze")
async def analyze_text(
    body: CompareRequest,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        patterns = await mistake_aggregator.analyze(body.expected, body.typed, user_id, db)
        await db.commit()
    return success_response(
        [MistakePatternResponse.model_validate(p).model_dump(mode="json") for p in patterns],
        count=len(patterns),
    )


@router.get("/top")
async def top_patterns(
    user_id: CurrentUserId,
    db: DbSession,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    patterns = await mistake_aggregator.top_patterns(user_id, db, limit=limit)
    return success_response(
        [MistakePatternResponse.model_validate(p).model_dump(mode="json") for p in patterns]
    )


@router.get("/common")
async def common_mistakes(
    user_id: CurrentUserId,
    db: DbSession,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict:
    rows = await mistake_aggregator.common_mistakes(user_id, db, limit=limit)
    return success_response([CommonMistake(**row).model_dump() for row in rows])


@router.delete("")
async def cleanup_patterns(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
    days_old: int = Query(default=90, ge=1),
) -> dict:
    """Delete patterns not seen for `days_old` days."""
    async with locks.hold(user_id):
        removed = await mistake_aggregator.cleanup(user_id, db, days_old=days_old)
        await db.commit()
    return success_response({"removed": removed})

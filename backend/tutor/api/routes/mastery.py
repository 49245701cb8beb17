"""Word mastery endpoints."""

from fastapi import APIRouter

from tutor.api.dependencies import CurrentUserId, DbSession, UserLocks
from tutor.core.mastery import mastery_classifier
from tutor.models.envelope import success_response
from tutor.models.progress import ComprehensionEvent, MasteryStats, TypingEvent, WordMasteryResponse

router = APIRouter()


def _dump(record) -> dict:
    return WordMasteryResponse.model_validate(record).model_dump(mode="json")


@router.post("/typing")
async def record_typing(
    body: TypingEvent,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        record = await mastery_classifier.record_typing(user_id, body.word, body.category, body.correct, db)
        await db.commit()
    return success_response(_dump(record))


@router.post("/comprehension")
async def record_comprehension(
    body: ComprehensionEvent,
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    """Count a comprehension check; `data` is null for words never typed."""
    async with locks.hold(user_id):
        record = await mastery_classifier.record_comprehension(user_id, body.word, body.correct, db)
        await db.commit()
    return success_response(_dump(record) if record is not None else None)


@router.get("/words/{word}")
async def get_mastery(
    word: str,
    user_id: CurrentUserId,
    db: DbSession,
) -> dict:
    record = await mastery_classifier.get_mastery(user_id, word, db)
    return success_response(_dump(record) if record is not None else None)


@router.get("/needs-practice")
async def needs_practice(user_id: CurrentUserId, db: DbSession) -> dict:
    records = await mastery_classifier.needs_practice(user_id, db)
    return success_response([_dump(r) for r in records])


@router.get("/mastered")
async def mastered(user_id: CurrentUserId, db: DbSession) -> dict:
    records = await mastery_classifier.mastered(user_id, db)
    return success_response([_dump(r) for r in records])


@router.get("/in-progress")
async def in_progress(user_id: CurrentUserId, db: DbSession) -> dict:
    records = await mastery_classifier.in_progress(user_id, db)
    return success_response([_dump(r) for r in records])


@router.get("/stats")
async def mastery_stats(user_id: CurrentUserId, db: DbSession) -> dict:
    stats = await mastery_classifier.stats(user_id, db)
    return success_response(MasteryStats(**stats).model_dump())


@router.delete("")
async def reset_mastery(
    user_id: CurrentUserId,
    db: DbSession,
    locks: UserLocks,
) -> dict:
    async with locks.hold(user_id):
        removed = await mastery_classifier.reset(user_id, db)
        await db.commit()
    return success_response({"removed": removed})

"""Cache maintenance endpoints."""

from fastapi import APIRouter, Query

from tutor.api.dependencies import CurrentUserId
from tutor.core.cache_store import cache_store
from tutor.models.envelope import success_response

router = APIRouter()


@router.get("/stats")
async def cache_stats(user_id: CurrentUserId) -> dict:
    return success_response(await cache_store.stats())


@router.post("/sweep")
async def sweep_cache(user_id: CurrentUserId) -> dict:
    """Delete expired entries now instead of waiting for the scheduled sweep."""
    removed = await cache_store.sweep_expired()
    return success_response({"removed": removed})


@router.delete("")
async def clear_cache(
    user_id: CurrentUserId,
    older_than_days: int | None = Query(default=None, ge=1),
) -> dict:
    """Clear every entry, or only those created more than `older_than_days` ago."""
    if older_than_days is None:
        removed = await cache_store.clear_all()
    else:
        removed = await cache_store.clear_older_than(older_than_days)
    return success_response({"removed": removed})

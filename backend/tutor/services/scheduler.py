"""Background maintenance scheduler.

Runs periodic jobs for:
- Cache sweep of expired entries (interval)
- Daily mistake-pattern cleanup (3:00 AM)
- Daily old-session and orphaned-attempt cleanup (3:30 AM, flag gated)
- Scheduled full backup (interval)

Every job logs and carries on: a failure for one user does not stop the
others, and a failed run does not prevent the next one.
"""

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _get_all_user_ids() -> list[str]:
    """Open a standalone session and return all user IDs."""
    from tutor.db.database import async_session_factory
    from tutor.db.repositories import user_repo

    async with async_session_factory() as session:
        return await user_repo.get_all_user_ids(session)


# ---------------------------------------------------------------------------
# Job 1: Cache sweep (interval)
# ---------------------------------------------------------------------------


async def sweep_expired_cache_job() -> None:
    """Remove cache entries whose TTL has passed."""
    from tutor.core.cache_store import cache_store

    try:
        removed = await cache_store.sweep_expired()
        logger.info("Cache sweep completed: %d expired entries removed", removed)
    except Exception:
        logger.error("Failed to sweep expired cache entries", exc_info=True)


# ---------------------------------------------------------------------------
# Job 2: Mistake pattern cleanup (Daily 3:00 AM)
# ---------------------------------------------------------------------------


async def cleanup_mistake_patterns_job() -> None:
    """Daily job: drop mistake patterns not seen within the retention window."""
    from tutor.config import settings
    from tutor.core.mistake_patterns import mistake_aggregator
    from tutor.core.user_locks import user_locks
    from tutor.db.database import async_session_factory

    logger.info(
        "Running mistake pattern cleanup (retention=%d days)",
        settings.mistake_pattern_retention_days,
    )

    try:
        user_ids = await _get_all_user_ids()
        total_deleted = 0

        for user_id in user_ids:
            try:
                async with user_locks.hold(user_id):
                    async with async_session_factory() as session:
                        deleted = await mistake_aggregator.cleanup(
                            user_id, session, days_old=settings.mistake_pattern_retention_days,
                        )
                        await session.commit()
                        total_deleted += deleted
            except Exception:
                logger.error(
                    "Mistake pattern cleanup failed for user %s", user_id, exc_info=True,
                )

        logger.info(
            "Mistake pattern cleanup completed: %d patterns deleted across %d users",
            total_deleted, len(user_ids),
        )
    except Exception:
        logger.error("Failed to run mistake pattern cleanup", exc_info=True)


# ---------------------------------------------------------------------------
# Job 3: Data retention cleanup (Daily 3:30 AM)
# ---------------------------------------------------------------------------


async def cleanup_old_sessions_job() -> None:
    """Daily job: delete closed sessions past retention, orphaned attempts and stale cache rows.

    Progress summaries are recomputed for users who lost sessions.
    """
    from tutor.config import settings

    if not settings.retention_cleanup_enabled:
        logger.info("Data retention cleanup is disabled, skipping")
        return

    logger.info("Running data retention cleanup (retention=%d days)", settings.session_retention_days)

    from tutor.core.cache_store import cache_store
    from tutor.core.progress import progress_calculator
    from tutor.core.user_locks import user_locks
    from tutor.db.database import async_session_factory
    from tutor.db.repositories import session_repo, typing_attempt_repo

    try:
        user_ids = await _get_all_user_ids()
        cutoff = datetime.utcnow() - timedelta(days=settings.session_retention_days)
        total_deleted = 0

        for user_id in user_ids:
            try:
                async with user_locks.hold(user_id):
                    async with async_session_factory() as session:
                        deleted = await session_repo.delete_sessions_before(session, user_id, cutoff)
                        if deleted:
                            await progress_calculator.recompute(user_id, session)
                        await session.commit()
                        total_deleted += deleted
            except Exception:
                logger.error(
                    "Retention cleanup failed for user %s", user_id, exc_info=True,
                )

        async with async_session_factory() as session:
            orphans = await typing_attempt_repo.delete_orphaned_attempts(session)
            await session.commit()

        stale = await cache_store.clear_older_than(settings.cache_max_age_days)

        logger.info(
            "Data retention cleanup completed: %d sessions across %d users, "
            "%d orphaned attempts, %d stale cache entries deleted",
            total_deleted, len(user_ids), orphans, stale,
        )
    except Exception:
        logger.error("Failed to run data retention cleanup", exc_info=True)


# ---------------------------------------------------------------------------
# Job 4: Scheduled backup (interval)
# ---------------------------------------------------------------------------


async def scheduled_backup_job() -> None:
    """Export everything to the backup slot and a backup file."""
    from tutor.db.database import async_session_factory
    from tutor.services.backup_service import backup_service
    from tutor.services.redis_client import get_backup_slot

    logger.info("Running scheduled backup")

    try:
        slot = await get_backup_slot()
        async with async_session_factory() as session:
            document = await backup_service.create_backup(session, slot=slot)
        logger.info(
            "Scheduled backup completed: %d users, %d sessions",
            len(document["users"]), len(document["sessions"]),
        )
    except Exception:
        logger.error("Scheduled backup failed", exc_info=True)


# ---------------------------------------------------------------------------
# Scheduler lifecycle
# ---------------------------------------------------------------------------


def start_scheduler() -> AsyncIOScheduler:
    """Start the background job scheduler with all maintenance jobs."""
    from tutor.config import settings

    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        sweep_expired_cache_job,
        IntervalTrigger(minutes=settings.cache_sweep_interval_minutes),
        id="sweep_expired_cache",
        name="Sweep expired cache entries",
        replace_existing=True,
    )

    # Daily job at 3 AM: Mistake pattern cleanup
    _scheduler.add_job(
        cleanup_mistake_patterns_job,
        CronTrigger(hour=3, minute=0),
        id="cleanup_mistake_patterns",
        name="Cleanup stale mistake patterns",
        replace_existing=True,
    )

    # Daily job at 3:30 AM: Session retention cleanup
    _scheduler.add_job(
        cleanup_old_sessions_job,
        CronTrigger(hour=3, minute=30),
        id="cleanup_old_sessions",
        name="Cleanup old sessions (retention)",
        replace_existing=True,
    )

    if settings.auto_backup_enabled:
        _scheduler.add_job(
            scheduled_backup_job,
            IntervalTrigger(hours=settings.auto_backup_interval_hours),
            id="scheduled_backup",
            name="Scheduled full backup",
            replace_existing=True,
        )

    _scheduler.start()
    logger.info("Background scheduler started with %d jobs", len(_scheduler.get_jobs()))

    return _scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global _scheduler

    if _scheduler is not None:
        _scheduler.shutdown()
        _scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the current scheduler instance."""
    return _scheduler


def trigger_job_now(job_id: str) -> bool:
    """Manually trigger a scheduled job immediately.

    Returns:
        True if job was triggered, False if job not found
    """
    if _scheduler is None:
        logger.error("Cannot trigger job - scheduler not running")
        return False

    job = _scheduler.get_job(job_id)
    if job is None:
        logger.error("Job not found: %s", job_id)
        return False

    job.modify(next_run_time=datetime.now())
    logger.info("Manually triggered job: %s", job_id)
    return True

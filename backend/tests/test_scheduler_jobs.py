"""Tests for the background maintenance jobs."""

from unittest.mock import AsyncMock, MagicMock, patch


class FakeSession:
    """Minimal async context-manager that acts like AsyncSession."""

    def __init__(self):
        self.committed = False

    async def commit(self):
        self.committed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


# ---------------------------------------------------------------------------
# Job 1: sweep_expired_cache_job
# ---------------------------------------------------------------------------


async def test_cache_sweep_calls_store():
    from tutor.services.scheduler import sweep_expired_cache_job

    with patch("tutor.core.cache_store.cache_store.sweep_expired", new_callable=AsyncMock) as mock_sweep:
        mock_sweep.return_value = 4
        await sweep_expired_cache_job()
        mock_sweep.assert_awaited_once()


async def test_cache_sweep_failure_is_logged(caplog):
    from tutor.services.scheduler import sweep_expired_cache_job

    with patch(
        "tutor.core.cache_store.cache_store.sweep_expired",
        new_callable=AsyncMock,
        side_effect=RuntimeError("db down"),
    ):
        await sweep_expired_cache_job()

    assert "Failed to sweep expired cache entries" in caplog.text


# ---------------------------------------------------------------------------
# Job 2: cleanup_mistake_patterns_job
# ---------------------------------------------------------------------------


@patch("tutor.services.scheduler._get_all_user_ids", new_callable=AsyncMock)
async def test_pattern_cleanup_runs_per_user(mock_ids):
    from tutor.services.scheduler import cleanup_mistake_patterns_job

    mock_ids.return_value = ["user-1", "user-2"]
    session = FakeSession()

    with (
        patch("tutor.db.database.async_session_factory", return_value=session),
        patch(
            "tutor.core.mistake_patterns.mistake_aggregator.cleanup",
            new_callable=AsyncMock,
            return_value=2,
        ) as mock_cleanup,
    ):
        await cleanup_mistake_patterns_job()

    assert mock_cleanup.await_count == 2
    assert mock_cleanup.call_args_list[0].args[0] == "user-1"
    assert mock_cleanup.call_args.kwargs["days_old"] == 90
    assert session.committed


@patch("tutor.services.scheduler._get_all_user_ids", new_callable=AsyncMock)
async def test_pattern_cleanup_continues_after_user_failure(mock_ids):
    from tutor.services.scheduler import cleanup_mistake_patterns_job

    mock_ids.return_value = ["user-1", "user-2"]

    with (
        patch("tutor.db.database.async_session_factory", return_value=FakeSession()),
        patch(
            "tutor.core.mistake_patterns.mistake_aggregator.cleanup",
            new_callable=AsyncMock,
            side_effect=[RuntimeError("boom"), 1],
        ) as mock_cleanup,
    ):
        await cleanup_mistake_patterns_job()

    assert mock_cleanup.await_count == 2


# ---------------------------------------------------------------------------
# Job 3: cleanup_old_sessions_job
# ---------------------------------------------------------------------------


@patch("tutor.services.scheduler._get_all_user_ids", new_callable=AsyncMock)
async def test_session_cleanup_recomputes_when_sessions_removed(mock_ids):
    from tutor.services.scheduler import cleanup_old_sessions_job

    mock_ids.return_value = ["user-1", "user-2"]

    with (
        patch("tutor.db.database.async_session_factory", return_value=FakeSession()),
        patch(
            "tutor.db.repositories.session_repo.delete_sessions_before",
            new_callable=AsyncMock,
            side_effect=[3, 0],
        ),
        patch(
            "tutor.core.progress.progress_calculator.recompute",
            new_callable=AsyncMock,
        ) as mock_recompute,
        patch(
            "tutor.db.repositories.typing_attempt_repo.delete_orphaned_attempts",
            new_callable=AsyncMock,
            return_value=5,
        ) as mock_orphans,
        patch(
            "tutor.core.cache_store.cache_store.clear_older_than",
            new_callable=AsyncMock,
            return_value=0,
        ) as mock_clear,
    ):
        await cleanup_old_sessions_job()

    mock_recompute.assert_awaited_once()
    assert mock_recompute.call_args.args[0] == "user-1"
    mock_orphans.assert_awaited_once()
    mock_clear.assert_awaited_once_with(30)


@patch("tutor.services.scheduler._get_all_user_ids", new_callable=AsyncMock)
async def test_session_cleanup_disabled(mock_ids):
    from tutor.config import settings
    from tutor.services.scheduler import cleanup_old_sessions_job

    with patch.object(settings, "retention_cleanup_enabled", False):
        await cleanup_old_sessions_job()

    mock_ids.assert_not_called()


# ---------------------------------------------------------------------------
# Job 4: scheduled_backup_job
# ---------------------------------------------------------------------------


async def test_scheduled_backup_uses_slot():
    from tutor.services.scheduler import scheduled_backup_job

    slot = MagicMock()
    document = {"users": [{"id": "u1"}], "sessions": []}

    with (
        patch("tutor.services.redis_client.get_backup_slot", new_callable=AsyncMock, return_value=slot),
        patch("tutor.db.database.async_session_factory", return_value=FakeSession()),
        patch(
            "tutor.services.backup_service.backup_service.create_backup",
            new_callable=AsyncMock,
            return_value=document,
        ) as mock_backup,
    ):
        await scheduled_backup_job()

    mock_backup.assert_awaited_once()
    assert mock_backup.call_args.kwargs["slot"] is slot


async def test_scheduled_backup_failure_does_not_raise(caplog):
    from tutor.services.scheduler import scheduled_backup_job

    with patch(
        "tutor.services.redis_client.get_backup_slot",
        new_callable=AsyncMock,
        side_effect=ConnectionRefusedError("redis down"),
    ):
        await scheduled_backup_job()

    assert "Scheduled backup failed" in caplog.text


# ---------------------------------------------------------------------------
# Scheduler lifecycle
# ---------------------------------------------------------------------------


async def test_start_and_stop_scheduler():
    from tutor.services import scheduler

    sched = scheduler.start_scheduler()
    try:
        job_ids = {job.id for job in sched.get_jobs()}
        assert {"sweep_expired_cache", "cleanup_mistake_patterns", "cleanup_old_sessions"} <= job_ids
        assert scheduler.get_scheduler() is sched
        assert scheduler.trigger_job_now("no-such-job") is False
    finally:
        scheduler.stop_scheduler()

    assert scheduler.get_scheduler() is None


def test_trigger_without_scheduler_returns_false():
    from tutor.services.scheduler import trigger_job_now

    assert trigger_job_now("sweep_expired_cache") is False


async def test_trigger_existing_job():
    from tutor.services import scheduler

    scheduler.start_scheduler()
    try:
        assert scheduler.trigger_job_now("sweep_expired_cache") is True
    finally:
        scheduler.stop_scheduler()

"""Tests for session lifecycle, streaks and progress analytics."""

from datetime import date, datetime, timedelta

import pytest

from tutor.core.progress import (
    ProgressCalculator,
    compute_streak,
    determine_level,
    to_local_date,
)
from tutor.db.exceptions import RecordNotFoundError, SessionAlreadyClosedError
from tutor.db.repositories import session_repo


TODAY = date(2026, 3, 10)


async def _closed_session(db, user_id, start, accuracy=90.0, wpm=20.0, words=10, level="letters"):
    session = await session_repo.create_session(db, user_id, level, start_time=start)
    await session_repo.close_session(
        db,
        session,
        end_time=start + timedelta(minutes=5),
        total_words=words,
        correct_words=words,
        accuracy=accuracy,
        words_per_minute=wpm,
    )
    return session


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_streak_counts_consecutive_days_ending_today():
    dates = [TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2)]
    assert compute_streak(dates, TODAY) == 3


def test_streak_ignores_days_after_a_gap():
    dates = [
        TODAY,
        TODAY - timedelta(days=1),
        TODAY - timedelta(days=2),
        TODAY - timedelta(days=5),
    ]
    assert compute_streak(dates, TODAY) == 3


def test_streak_is_zero_without_practice_today():
    dates = [TODAY - timedelta(days=1), TODAY - timedelta(days=2)]
    assert compute_streak(dates, TODAY) == 0


def test_streak_counts_each_day_once():
    dates = [TODAY, TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=1)]
    assert compute_streak(dates, TODAY) == 2


def test_streak_skips_future_dates():
    dates = [TODAY + timedelta(days=1), TODAY, TODAY - timedelta(days=1)]
    assert compute_streak(dates, TODAY) == 2


def test_local_date_uses_configured_zone():
    late_evening_utc = datetime(2026, 3, 10, 23, 30)
    assert to_local_date(late_evening_utc, "UTC") == date(2026, 3, 10)
    assert to_local_date(late_evening_utc, "Asia/Tokyo") == date(2026, 3, 11)


@pytest.mark.parametrize(
    "words,accuracy,expected",
    [
        (0, 0.0, "letters"),
        (49, 95.0, "letters"),
        (60, 65.0, "letters"),
        (60, 75.0, "words"),
        (250, 82.0, "sentences"),
        (600, 90.0, "scenes"),
    ],
)
def test_determine_level(words, accuracy, expected):
    assert determine_level(words, accuracy) == expected


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@pytest.fixture
def calculator():
    return ProgressCalculator()


async def test_end_session_closes_and_recomputes(db, test_user, calculator):
    session = await calculator.start_session(test_user.id, "letters", db)
    assert session.end_time is None

    await calculator.end_session(
        session.id,
        {"total_words": 12, "correct_words": 11, "accuracy": 91.7, "words_per_minute": 18.0},
        db,
        user_id=test_user.id,
    )

    assert session.end_time is not None
    progress = await calculator.get_summary(test_user.id, db)
    assert progress.total_sessions == 1
    assert progress.total_words_typed == 12
    assert progress.average_accuracy == pytest.approx(91.7)
    assert progress.streak == 1


async def test_session_closes_only_once(db, test_user, calculator):
    session = await calculator.start_session(test_user.id, "letters", db)
    stats = {"total_words": 5, "correct_words": 5, "accuracy": 100.0, "words_per_minute": 10.0}
    await calculator.end_session(session.id, stats, db)

    with pytest.raises(SessionAlreadyClosedError):
        await calculator.end_session(session.id, stats, db)


async def test_end_unknown_session_raises_not_found(db, test_user, calculator):
    stats = {"total_words": 0, "correct_words": 0, "accuracy": 0.0, "words_per_minute": 0.0}
    with pytest.raises(RecordNotFoundError):
        await calculator.end_session("missing", stats, db)


async def test_end_session_of_another_user_raises_not_found(db, test_user, calculator):
    session = await calculator.start_session(test_user.id, "letters", db)
    stats = {"total_words": 0, "correct_words": 0, "accuracy": 0.0, "words_per_minute": 0.0}
    with pytest.raises(RecordNotFoundError):
        await calculator.end_session(session.id, stats, db, user_id="someone-else")


async def test_open_sessions_do_not_count(db, test_user, calculator):
    await calculator.start_session(test_user.id, "letters", db)
    progress = await calculator.recompute(test_user.id, db)
    assert progress.total_sessions == 0
    assert progress.streak == 0


async def test_recompute_streak_from_sessions(db, test_user, calculator):
    noon = datetime(TODAY.year, TODAY.month, TODAY.day, 12, 0)
    for days_ago in (0, 1, 2, 5):
        await _closed_session(db, test_user.id, noon - timedelta(days=days_ago))

    progress = await calculator.recompute(test_user.id, db, today=TODAY)
    assert progress.streak == 3
    assert progress.total_sessions == 4
    assert progress.last_session_date == TODAY


async def test_recompute_replaces_previous_summary(db, test_user, calculator):
    start = datetime(2026, 3, 1, 9, 0)
    await _closed_session(db, test_user.id, start, accuracy=80.0, words=10)
    first = await calculator.recompute(test_user.id, db, today=TODAY)
    assert first.total_words_typed == 10

    await _closed_session(db, test_user.id, start + timedelta(hours=1), accuracy=100.0, words=30)
    second = await calculator.recompute(test_user.id, db, today=TODAY)
    assert second.total_words_typed == 40
    assert second.average_accuracy == pytest.approx(90.0)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


async def test_improvement_rate_compares_window_halves(db, test_user, calculator):
    now = datetime(2026, 3, 30, 12, 0)
    await _closed_session(db, test_user.id, now - timedelta(days=25), accuracy=80.0)
    await _closed_session(db, test_user.id, now - timedelta(days=5), accuracy=88.0)

    rate = await calculator.improvement_rate(test_user.id, db, window_days=30, now=now)
    assert rate == pytest.approx(10.0)


async def test_improvement_rate_needs_both_halves(db, test_user, calculator):
    now = datetime(2026, 3, 30, 12, 0)
    await _closed_session(db, test_user.id, now - timedelta(days=5), accuracy=88.0)

    assert await calculator.improvement_rate(test_user.id, db, now=now) == 0.0


async def test_typing_trends_group_by_day(db, test_user, calculator):
    now = datetime(2026, 3, 30, 18, 0)
    await _closed_session(db, test_user.id, now - timedelta(days=1, hours=2), accuracy=80.0, words=10)
    await _closed_session(db, test_user.id, now - timedelta(days=1, hours=1), accuracy=90.0, words=20)
    await _closed_session(db, test_user.id, now - timedelta(hours=1), accuracy=95.0, words=5)

    trends = await calculator.typing_trends(test_user.id, db, days=7, now=now)

    assert [t["date"] for t in trends] == ["2026-03-29", "2026-03-30"]
    assert trends[0]["sessions"] == 2
    assert trends[0]["avg_accuracy"] == pytest.approx(85.0)
    assert trends[0]["total_words"] == 30


async def test_practice_time_stats(db, test_user, calculator):
    now = datetime(2026, 3, 30, 12, 0)
    await _closed_session(db, test_user.id, now - timedelta(days=2))
    await _closed_session(db, test_user.id, now - timedelta(days=20))

    stats = await calculator.practice_time_stats(test_user.id, db, now=now)

    assert stats["total_sessions"] == 2
    assert stats["sessions_this_week"] == 1
    assert stats["sessions_this_month"] == 2
    assert stats["total_minutes"] == pytest.approx(10.0)


async def test_performance_by_level(db, test_user, calculator):
    start = datetime(2026, 3, 1, 9, 0)
    await _closed_session(db, test_user.id, start, accuracy=80.0, level="letters")
    await _closed_session(db, test_user.id, start + timedelta(hours=1), accuracy=90.0, level="words")

    levels = {row["level"]: row for row in await calculator.performance_by_level(test_user.id, db)}

    assert set(levels) == {"letters", "words"}
    assert levels["words"]["sessions"] == 1

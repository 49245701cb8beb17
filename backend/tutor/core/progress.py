"""Session lifecycle, streaks and the per-user progress summary.

The summary row is never patched incrementally: every recompute reads the
user's closed sessions and replaces all summary fields.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from tutor.config import settings
from tutor.db.exceptions import RecordNotFoundError, SessionAlreadyClosedError
from tutor.db.models import PracticeSession, Progress
from tutor.db.repositories import progress_repo, session_repo, typing_attempt_repo

logger = logging.getLogger(__name__)

# Only this many most recent sessions are considered when counting a streak
STREAK_LOOKBACK_SESSIONS = 365

# (level, minimum words, minimum average accuracy) to move past each level
_LEVEL_GATES = (
    ("letters", 50, 70.0),
    ("words", 200, 80.0),
    ("sentences", 500, 85.0),
)
TOP_LEVEL = "scenes"


# ------------------------------------------------------------------
# Pure helpers
# ------------------------------------------------------------------


def to_local_date(moment: datetime, tz_name: str | None = None) -> date:
    """Calendar date of a naive-UTC timestamp in the configured zone."""
    zone = ZoneInfo(tz_name or settings.timezone)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone).date()


def local_today(tz_name: str | None = None) -> date:
    return datetime.now(ZoneInfo(tz_name or settings.timezone)).date()


def compute_streak(session_dates: Iterable[date], today: date) -> int:
    """Count consecutive days with practice, ending today.

    Dates are walked newest first. A date exactly `streak` days before today
    extends the streak; a larger gap ends it; anything closer (duplicates,
    future-dated rows) is skipped.
    """
    streak = 0
    for day in sorted(set(session_dates), reverse=True):
        days_diff = (today - day).days
        if days_diff == streak:
            streak += 1
        elif days_diff > streak:
            break
    return streak


def determine_level(total_words: int, average_accuracy: float) -> str:
    """Recommended level for the given volume and accuracy."""
    for level, min_words, min_accuracy in _LEVEL_GATES:
        if total_words < min_words or average_accuracy < min_accuracy:
            return level
    return TOP_LEVEL


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class ProgressCalculator:
    """Owns session open/close and every derived progress figure."""

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_session(
        self,
        user_id: str,
        level: str,
        db: AsyncSession,
        session_id: str | None = None,
    ) -> PracticeSession:
        session = await session_repo.create_session(db, user_id, level, session_id=session_id)
        logger.info(f"Started session {session.id} for user {user_id} at level {level}")
        return session

    async def end_session(
        self,
        session_id: str,
        stats: dict[str, Any],
        db: AsyncSession,
        user_id: str | None = None,
    ) -> PracticeSession:
        """Close a session exactly once with its final statistics, then recompute progress.

        Raises RecordNotFoundError for an unknown session (or one owned by
        another user) and SessionAlreadyClosedError on a second close.
        """
        session = await session_repo.get_session_by_id(db, session_id)
        if session is None or (user_id is not None and session.user_id != user_id):
            raise RecordNotFoundError("Session", session_id)
        if session.end_time is not None:
            raise SessionAlreadyClosedError(session_id)

        await session_repo.close_session(
            db,
            session,
            end_time=stats.get("end_time") or datetime.utcnow(),
            total_words=stats["total_words"],
            correct_words=stats["correct_words"],
            accuracy=stats["accuracy"],
            words_per_minute=stats["words_per_minute"],
        )
        await self.recompute(session.user_id, db)
        return session

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    async def recompute(self, user_id: str, db: AsyncSession, today: date | None = None) -> Progress:
        """Rebuild the summary from closed sessions and replace the stored row."""
        sessions = await session_repo.get_closed_sessions(db, user_id)

        total_sessions = len(sessions)
        total_words = sum(s.total_words for s in sessions)
        average_accuracy = _mean([s.accuracy for s in sessions])
        average_wpm = _mean([s.words_per_minute for s in sessions])

        recent_dates = [to_local_date(s.start_time) for s in sessions[:STREAK_LOOKBACK_SESSIONS]]
        streak = compute_streak(recent_dates, today or local_today())
        last_session_date = recent_dates[0] if recent_dates else None

        progress = await progress_repo.upsert_progress(
            db,
            user_id,
            current_level=determine_level(total_words, average_accuracy),
            total_sessions=total_sessions,
            total_words_typed=total_words,
            average_accuracy=round(average_accuracy, 2),
            average_wpm=round(average_wpm, 2),
            streak=streak,
            last_session_date=last_session_date,
        )
        logger.debug(
            f"Recomputed progress for user {user_id}: {total_sessions} sessions, "
            f"{total_words} words, streak {streak}"
        )
        return progress

    async def get_summary(self, user_id: str, db: AsyncSession) -> Progress:
        """Stored summary, computed on first access."""
        progress = await progress_repo.get_progress(db, user_id)
        if progress is None:
            progress = await self.recompute(user_id, db)
        return progress

    async def improvement_rate(
        self,
        user_id: str,
        db: AsyncSession,
        window_days: int = 30,
        now: datetime | None = None,
    ) -> float:
        """Percentage change in mean accuracy between the older and newer half of the window."""
        now = now or datetime.utcnow()
        window_start = now - timedelta(days=window_days)
        midpoint = now - timedelta(days=window_days / 2)

        sessions = await session_repo.get_closed_sessions(db, user_id, since=window_start)
        newer = [s.accuracy for s in sessions if s.start_time >= midpoint]
        older = [s.accuracy for s in sessions if s.start_time < midpoint]

        older_mean = _mean(older)
        if not newer or not older or older_mean == 0:
            return 0.0
        return round((_mean(newer) - older_mean) / older_mean * 100, 2)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def typing_trends(
        self,
        user_id: str,
        db: AsyncSession,
        days: int = 30,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Per local day: session count, mean accuracy, mean WPM and words typed (oldest day first)."""
        now = now or datetime.utcnow()
        sessions = await session_repo.get_closed_sessions(db, user_id, since=now - timedelta(days=days))

        by_day: dict[date, list[PracticeSession]] = {}
        for s in sessions:
            by_day.setdefault(to_local_date(s.start_time), []).append(s)

        return [
            {
                "date": day.isoformat(),
                "sessions": len(day_sessions),
                "avg_accuracy": round(_mean([s.accuracy for s in day_sessions]), 2),
                "avg_wpm": round(_mean([s.words_per_minute for s in day_sessions]), 2),
                "total_words": sum(s.total_words for s in day_sessions),
            }
            for day, day_sessions in sorted(by_day.items())
        ]

    async def performance_by_level(self, user_id: str, db: AsyncSession) -> list[dict[str, Any]]:
        return await progress_repo.get_performance_by_level(db, user_id)

    async def practice_time_stats(
        self,
        user_id: str,
        db: AsyncSession,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Session counts and practice minutes overall, over 7 days and over 30 days."""
        now = now or datetime.utcnow()
        week_start = now - timedelta(days=7)
        month_start = now - timedelta(days=30)
        sessions = await session_repo.get_closed_sessions(db, user_id)

        def minutes(items: list[PracticeSession]) -> float:
            seconds = sum((s.end_time - s.start_time).total_seconds() for s in items if s.end_time)
            return round(seconds / 60, 1)

        this_week = [s for s in sessions if s.start_time >= week_start]
        this_month = [s for s in sessions if s.start_time >= month_start]
        return {
            "total_sessions": len(sessions),
            "sessions_this_week": len(this_week),
            "sessions_this_month": len(this_month),
            "total_minutes": minutes(sessions),
            "minutes_this_week": minutes(this_week),
            "minutes_this_month": minutes(this_month),
        }

    async def attempt_stats(
        self,
        user_id: str,
        db: AsyncSession,
        days: int = 30,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or datetime.utcnow()
        attempts = await typing_attempt_repo.list_attempts(db, user_id, since=now - timedelta(days=days))
        return {
            "total_attempts": len(attempts),
            "correct_attempts": sum(1 for a in attempts if a.is_correct),
            "average_wpm": round(_mean([a.wpm for a in attempts]), 2),
            "average_accuracy": round(_mean([a.accuracy for a in attempts]), 2),
            "total_mistakes": sum(a.mistakes_count for a in attempts),
        }


progress_calculator = ProgressCalculator()

"""Achievement rule engine.

Rules are evaluated in declaration order against the freshly recomputed
progress summary. An achievement is written once per user and never revoked.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from tutor.core.progress import progress_calculator
from tutor.db.models import Achievement, Progress
from tutor.db.repositories import achievement_repo

logger = logging.getLogger(__name__)


class AchievementCategory(str, Enum):
    MILESTONE = "milestone"
    PROGRESS = "progress"
    SKILL = "skill"
    CONSISTENCY = "consistency"
    SPEED = "speed"


@dataclass(frozen=True)
class AchievementRule:
    id: str
    title: str
    description: str
    icon: str
    category: AchievementCategory
    predicate: Callable[[Progress], bool]


ACHIEVEMENT_RULES: tuple[AchievementRule, ...] = (
    AchievementRule(
        "first_session", "First Steps", "Completed your first typing session!", "🎉",
        AchievementCategory.MILESTONE, lambda p: p.total_sessions >= 1,
    ),
    AchievementRule(
        "ten_sessions", "Getting Started", "Completed 10 typing sessions", "⭐",
        AchievementCategory.MILESTONE, lambda p: p.total_sessions >= 10,
    ),
    AchievementRule(
        "fifty_sessions", "Dedicated Learner", "Completed 50 typing sessions", "🏆",
        AchievementCategory.MILESTONE, lambda p: p.total_sessions >= 50,
    ),
    AchievementRule(
        "hundred_words", "Word Warrior", "Typed 100 words total", "📝",
        AchievementCategory.PROGRESS, lambda p: p.total_words_typed >= 100,
    ),
    AchievementRule(
        "thousand_words", "Master Typist", "Typed 1000 words total", "🎯",
        AchievementCategory.PROGRESS, lambda p: p.total_words_typed >= 1000,
    ),
    AchievementRule(
        "accuracy_90", "Precision Pro", "Achieved 90% average accuracy", "🎖️",
        AchievementCategory.SKILL, lambda p: p.average_accuracy >= 90,
    ),
    AchievementRule(
        "accuracy_95", "Perfect Precision", "Achieved 95% average accuracy", "💎",
        AchievementCategory.SKILL, lambda p: p.average_accuracy >= 95,
    ),
    AchievementRule(
        "streak_7", "Week Warrior", "7-day practice streak", "🔥",
        AchievementCategory.CONSISTENCY, lambda p: p.streak >= 7,
    ),
    AchievementRule(
        "streak_30", "Month Master", "30-day practice streak", "🌟",
        AchievementCategory.CONSISTENCY, lambda p: p.streak >= 30,
    ),
    AchievementRule(
        "speed_20wpm", "Speed Starter", "Average 20 words per minute", "⚡",
        AchievementCategory.SPEED, lambda p: p.average_wpm >= 20,
    ),
    AchievementRule(
        "speed_40wpm", "Speed Master", "Average 40 words per minute", "🚀",
        AchievementCategory.SPEED, lambda p: p.average_wpm >= 40,
    ),
)


class AchievementEngine:
    """Unlocks achievements whose rule holds for the user's current summary."""

    def __init__(self, rules: tuple[AchievementRule, ...] = ACHIEVEMENT_RULES) -> None:
        self.rules = rules

    async def check(self, user_id: str, db: AsyncSession) -> list[Achievement]:
        """Evaluate every rule and record the newly satisfied ones.

        Returns only achievements unlocked by this call, in rule order.
        """
        progress = await progress_calculator.get_summary(user_id, db)
        unlocked: list[Achievement] = []

        for rule in self.rules:
            if not rule.predicate(progress):
                continue
            if await achievement_repo.has_achievement(db, user_id, rule.id):
                continue
            achievement = await achievement_repo.create_achievement(
                db,
                user_id=user_id,
                achievement_id=rule.id,
                title=rule.title,
                description=rule.description,
                icon=rule.icon,
                category=rule.category.value,
            )
            unlocked.append(achievement)

        if unlocked:
            logger.info(f"User {user_id} unlocked {len(unlocked)} achievement(s): {[a.id for a in unlocked]}")
        return unlocked

    async def list_achievements(self, user_id: str, db: AsyncSession) -> list[Achievement]:
        """Unlocked achievements, newest first."""
        return await achievement_repo.list_achievements(db, user_id)


achievement_engine = AchievementEngine()

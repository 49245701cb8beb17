"""Word mastery classification.

Every typing or comprehension event updates a per-word record and the mastery
level is re-derived from the counters. Callers never set the level directly.

    new        no typing events yet
    learning   seen, but not accurate enough to review
    reviewing  at least 2 correct with >= 60% accuracy
    mastered   at least 3 correct with >= 80% accuracy, and at least 2
               correct comprehension checks with >= 70% comprehension accuracy
"""

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from tutor.db.models import WordMastery
from tutor.db.repositories import word_mastery_repo

logger = logging.getLogger(__name__)


class MasteryLevel(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


MASTERED_MIN_CORRECT = 3
MASTERED_MIN_ACCURACY = 0.8
MASTERED_MIN_COMPREHENSION = 2
MASTERED_MIN_COMPREHENSION_ACCURACY = 0.7
REVIEWING_MIN_CORRECT = 2
REVIEWING_MIN_ACCURACY = 0.6


def classify(
    correct_count: int,
    total_seen: int,
    comprehension_correct: int,
    comprehension_wrong: int,
) -> MasteryLevel:
    """Derive the mastery level from the counters; first matching rule wins."""
    if total_seen == 0:
        return MasteryLevel.NEW

    accuracy = correct_count / total_seen
    comprehension_total = comprehension_correct + comprehension_wrong
    comprehension_accuracy = (
        comprehension_correct / comprehension_total if comprehension_total else 0.0
    )

    if (
        correct_count >= MASTERED_MIN_CORRECT
        and accuracy >= MASTERED_MIN_ACCURACY
        and comprehension_correct >= MASTERED_MIN_COMPREHENSION
        and comprehension_accuracy >= MASTERED_MIN_COMPREHENSION_ACCURACY
    ):
        return MasteryLevel.MASTERED

    if correct_count >= REVIEWING_MIN_CORRECT and accuracy >= REVIEWING_MIN_ACCURACY:
        return MasteryLevel.REVIEWING

    return MasteryLevel.LEARNING


def reclassify(record: WordMastery) -> None:
    record.mastery_level = classify(
        record.correct_count,
        record.total_seen,
        record.comprehension_correct,
        record.comprehension_wrong,
    ).value


class MasteryClassifier:
    """Records typing/comprehension events and answers mastery queries."""

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def record_typing(
        self,
        user_id: str,
        word: str,
        category: str,
        correct: bool,
        db: AsyncSession,
        now: datetime | None = None,
    ) -> WordMastery:
        """Count one typing attempt of `word`, creating its record on first sight."""
        record = await word_mastery_repo.get_word(db, user_id, word)
        if record is None:
            record = await word_mastery_repo.create_word(db, user_id, word, category)

        record.total_seen += 1
        if correct:
            record.correct_count += 1
        else:
            record.wrong_count += 1
        record.last_seen_at = now or datetime.utcnow()
        reclassify(record)

        return await word_mastery_repo.save_word(db, record)

    async def record_comprehension(
        self,
        user_id: str,
        word: str,
        correct: bool,
        db: AsyncSession,
    ) -> WordMastery | None:
        """Count a comprehension check. Words never typed are ignored (returns None)."""
        record = await word_mastery_repo.get_word(db, user_id, word)
        if record is None:
            logger.debug(f"Ignoring comprehension event for untyped word '{word}' (user {user_id})")
            return None

        if correct:
            record.comprehension_correct += 1
        else:
            record.comprehension_wrong += 1
        reclassify(record)

        return await word_mastery_repo.save_word(db, record)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_mastery(self, user_id: str, word: str, db: AsyncSession) -> WordMastery | None:
        return await word_mastery_repo.get_word(db, user_id, word)

    async def needs_practice(self, user_id: str, db: AsyncSession) -> list[WordMastery]:
        return await word_mastery_repo.list_needs_practice(db, user_id)

    async def mastered(self, user_id: str, db: AsyncSession) -> list[WordMastery]:
        return await word_mastery_repo.list_words(db, user_id, levels=(MasteryLevel.MASTERED.value,))

    async def in_progress(self, user_id: str, db: AsyncSession) -> list[WordMastery]:
        return await word_mastery_repo.list_words(
            db, user_id, levels=(MasteryLevel.LEARNING.value, MasteryLevel.REVIEWING.value)
        )

    async def stats(self, user_id: str, db: AsyncSession) -> dict[str, int]:
        """Number of words at each level, plus the total tracked."""
        counts = await word_mastery_repo.count_by_level(db, user_id)
        stats = {level.value: counts.get(level.value, 0) for level in MasteryLevel}
        stats["total"] = sum(counts.values())
        return stats

    async def reset(self, user_id: str, db: AsyncSession) -> int:
        """Drop every mastery record for the user."""
        removed = await word_mastery_repo.delete_all_words(db, user_id)
        logger.info(f"Reset {removed} word mastery records for user {user_id}")
        return removed


mastery_classifier = MasteryClassifier()

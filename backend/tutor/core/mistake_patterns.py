"""Character-level mistake aggregation.

Typed text is compared position by position against the expected text; every
mismatch bumps a per-user counter keyed by (pattern type, expected char,
typed char). Mismatches are not aligned, so an inserted or dropped character
shifts every later comparison.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tutor.core.mastery import mastery_classifier
from tutor.db.models import MistakePattern, TypingAttempt
from tutor.db.repositories import mistake_pattern_repo, typing_attempt_repo

logger = logging.getLogger(__name__)


class PatternType(str, Enum):
    SUBSTITUTION = "substitution"
    OMISSION = "omission"


@dataclass(frozen=True)
class Mismatch:
    pattern_type: PatternType
    from_char: str
    to_char: str
    position: int


def compare(expected: str, typed: str) -> list[Mismatch]:
    """List every position where the typed text differs from the expected text.

    A position with a typed character is a substitution; a position past the
    end of the typed text is an omission. Missing characters are "".
    """
    mismatches: list[Mismatch] = []
    for i in range(max(len(expected), len(typed))):
        expected_char = expected[i] if i < len(expected) else ""
        typed_char = typed[i] if i < len(typed) else ""
        if expected_char == typed_char:
            continue
        mismatches.append(
            Mismatch(
                pattern_type=PatternType.SUBSTITUTION if typed_char else PatternType.OMISSION,
                from_char=expected_char,
                to_char=typed_char,
                position=i,
            )
        )
    return mismatches


class MistakePatternAggregator:
    """Persists mismatches as running per-user frequencies."""

    async def analyze(
        self,
        expected: str,
        typed: str,
        user_id: str,
        db: AsyncSession,
    ) -> list[MistakePattern]:
        """Record every mismatch between `expected` and `typed` for the user."""
        now = datetime.utcnow()
        patterns = []
        for mismatch in compare(expected, typed):
            pattern = await mistake_pattern_repo.upsert_pattern(
                db,
                user_id,
                pattern_type=mismatch.pattern_type.value,
                from_char=mismatch.from_char,
                to_char=mismatch.to_char,
                word_context=expected,
                now=now,
            )
            patterns.append(pattern)
        return patterns

    async def top_patterns(self, user_id: str, db: AsyncSession, limit: int = 10) -> list[MistakePattern]:
        return await mistake_pattern_repo.get_top_patterns(db, user_id, limit)

    async def common_mistakes(self, user_id: str, db: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
        return await mistake_pattern_repo.get_common_mistakes(db, user_id, limit)

    async def cleanup(self, user_id: str, db: AsyncSession, days_old: int = 90) -> int:
        """Drop patterns not seen for `days_old` days."""
        cutoff = datetime.utcnow() - timedelta(days=days_old)
        removed = await mistake_pattern_repo.delete_patterns_before(db, user_id, cutoff)
        if removed:
            logger.info(f"Removed {removed} stale mistake patterns for user {user_id}")
        return removed

    # ------------------------------------------------------------------
    # Typing attempts
    # ------------------------------------------------------------------

    async def record_attempt(
        self,
        attempt: dict[str, Any],
        db: AsyncSession,
        word_category: str | None = None,
    ) -> TypingAttempt:
        """Store an attempt and feed it to the aggregators.

        Mismatches are analysed only when the attempt reports mistakes. When
        `word_category` is given, the expected text is also counted as a
        typing event for word mastery.
        """
        record = await typing_attempt_repo.create_attempt(db, attempt)
        if record.mistakes_count > 0:
            await self.analyze(record.expected_text, record.typed_text, record.user_id, db)
        if word_category is not None:
            await mastery_classifier.record_typing(
                record.user_id, record.expected_text, word_category, record.is_correct, db
            )
        return record


mistake_aggregator = MistakePatternAggregator()

"""Tests for word mastery classification."""

import pytest

from tutor.core.mastery import MasteryClassifier, MasteryLevel, classify


# ---------------------------------------------------------------------------
# classify()
# ---------------------------------------------------------------------------


def test_unseen_word_is_new():
    assert classify(0, 0, 0, 0) == MasteryLevel.NEW


def test_perfect_typing_with_comprehension_is_mastered():
    assert classify(3, 3, 2, 0) == MasteryLevel.MASTERED


def test_one_comprehension_check_is_not_enough():
    level = classify(3, 3, 1, 0)
    assert level != MasteryLevel.MASTERED
    assert level == MasteryLevel.REVIEWING


def test_low_comprehension_accuracy_blocks_mastery():
    # 2 of 4 checks correct is 50%
    assert classify(5, 5, 2, 2) == MasteryLevel.REVIEWING


def test_reviewing_needs_two_correct_at_sixty_percent():
    assert classify(2, 3, 0, 0) == MasteryLevel.REVIEWING
    assert classify(2, 4, 0, 0) == MasteryLevel.LEARNING
    assert classify(1, 1, 0, 0) == MasteryLevel.LEARNING


# ---------------------------------------------------------------------------
# MasteryClassifier
# ---------------------------------------------------------------------------


@pytest.fixture
def classifier():
    return MasteryClassifier()


async def test_typing_events_keep_counts_consistent(db, test_user, classifier):
    outcomes = [True, False, True, True, False]
    for correct in outcomes:
        record = await classifier.record_typing(test_user.id, "cat", "animals", correct, db)
        assert record.total_seen == record.correct_count + record.wrong_count

    assert record.total_seen == 5
    assert record.correct_count == 3
    assert record.category == "animals"


async def test_word_reaches_mastery_through_comprehension(db, test_user, classifier):
    for _ in range(3):
        await classifier.record_typing(test_user.id, "dog", "animals", True, db)

    record = await classifier.get_mastery(test_user.id, "dog", db)
    assert record.mastery_level == "reviewing"

    await classifier.record_comprehension(test_user.id, "dog", True, db)
    record = await classifier.record_comprehension(test_user.id, "dog", True, db)
    assert record.mastery_level == "mastered"


async def test_comprehension_on_untyped_word_is_ignored(db, test_user, classifier):
    result = await classifier.record_comprehension(test_user.id, "zebra", True, db)
    assert result is None
    assert await classifier.get_mastery(test_user.id, "zebra", db) is None


async def test_words_are_case_preserving(db, test_user, classifier):
    await classifier.record_typing(test_user.id, "Cat", "", True, db)
    assert await classifier.get_mastery(test_user.id, "Cat", db) is not None
    assert await classifier.get_mastery(test_user.id, "cat", db) is None


async def test_needs_practice_and_mastered_lists(db, test_user, classifier):
    await classifier.record_typing(test_user.id, "hard", "", False, db)
    for _ in range(3):
        await classifier.record_typing(test_user.id, "easy", "", True, db)
    await classifier.record_comprehension(test_user.id, "easy", True, db)
    await classifier.record_comprehension(test_user.id, "easy", True, db)

    needs = [r.word for r in await classifier.needs_practice(test_user.id, db)]
    mastered = [r.word for r in await classifier.mastered(test_user.id, db)]

    assert needs == ["hard"]
    assert mastered == ["easy"]


async def test_stats_and_reset(db, test_user, classifier):
    await classifier.record_typing(test_user.id, "a", "", False, db)
    await classifier.record_typing(test_user.id, "b", "", True, db)
    await classifier.record_typing(test_user.id, "b", "", True, db)

    stats = await classifier.stats(test_user.id, db)
    assert stats["learning"] == 1
    assert stats["reviewing"] == 1
    assert stats["total"] == 2

    removed = await classifier.reset(test_user.id, db)
    assert removed == 2
    stats = await classifier.stats(test_user.id, db)
    assert stats["total"] == 0

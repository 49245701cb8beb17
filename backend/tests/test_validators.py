"""Tests for record and snapshot validators."""

from datetime import datetime

import pytest

from tutor.core.validators import (
    parse_exported_at,
    validate_achievement,
    validate_custom_word,
    validate_mistake_pattern,
    validate_progress,
    validate_session,
    validate_settings,
    validate_snapshot,
    validate_typing_attempt,
    validate_user,
    validate_word_mastery,
)
from tutor.models.snapshot import OPTIONAL_ARRAYS, REQUIRED_ARRAYS


def _snapshot(**overrides):
    document = {"version": "1.1.0", "exportedAt": "2026-04-01T10:00:00Z"}
    document.update({name: [] for name in REQUIRED_ARRAYS + OPTIONAL_ARRAYS})
    document.update(overrides)
    return document


# ---------------------------------------------------------------------------
# Snapshot shape
# ---------------------------------------------------------------------------


def test_valid_snapshot():
    result = validate_snapshot(_snapshot())
    assert result.valid
    assert result.errors == []


def test_snapshot_must_be_an_object():
    result = validate_snapshot(["not", "a", "dict"])
    assert not result.valid


def test_snapshot_missing_version_and_timestamp():
    document = _snapshot()
    del document["version"]
    del document["exportedAt"]

    result = validate_snapshot(document)

    assert not result.valid
    assert "Backup version is required" in result.errors
    assert "Export timestamp is required" in result.errors


def test_snapshot_with_unparseable_timestamp():
    result = validate_snapshot(_snapshot(exportedAt="yesterday"))
    assert result.errors == ["Export timestamp must be an ISO 8601 date-time"]


def test_snapshot_required_arrays_must_be_arrays():
    document = _snapshot(sessions={"id": "s1"})
    del document["achievements"]

    result = validate_snapshot(document)

    assert "sessions must be an array" in result.errors
    assert "achievements must be an array" in result.errors


def test_snapshot_optional_arrays_may_be_missing_but_not_wrong():
    document = _snapshot()
    del document["word_mastery"]
    assert validate_snapshot(document).valid

    result = validate_snapshot(_snapshot(mistake_patterns="nope"))
    assert result.errors == ["mistake_patterns must be an array"]


def test_parse_exported_at_accepts_zulu_suffix():
    parsed = parse_exported_at("2026-04-01T10:00:00Z")
    assert parsed.year == 2026
    assert parsed.utcoffset().total_seconds() == 0
    assert parse_exported_at(None) is None
    assert parse_exported_at("nope") is None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def test_validators_never_raise_on_garbage():
    for validator in (
        validate_user, validate_session, validate_settings, validate_progress,
        validate_achievement, validate_custom_word, validate_typing_attempt,
        validate_word_mastery, validate_mistake_pattern,
    ):
        result = validator("garbage")
        assert not result.valid
        assert result.errors


def test_user_requires_name():
    result = validate_user({"id": "u1", "name": ""})
    assert not result.valid
    assert result.errors[0].startswith("user.name")


def test_session_timestamps_become_naive_utc():
    result = validate_session(
        {"id": "s1", "user_id": "u1", "start_time": "2026-04-01T12:00:00+02:00", "level": "letters"}
    )
    assert result.valid
    assert result.record.start_time == datetime(2026, 4, 1, 10, 0)


def test_session_accuracy_range():
    result = validate_session(
        {"id": "s1", "user_id": "u1", "start_time": "2026-04-01T12:00:00", "level": "x", "accuracy": 120}
    )
    assert not result.valid


def test_progress_accepts_timestamp_for_last_session_date():
    result = validate_progress({"user_id": "u1", "last_session_date": "2026-04-01T08:30:00.000Z"})
    assert result.valid
    assert result.record.last_session_date.isoformat() == "2026-04-01"


@pytest.mark.parametrize("difficulty,valid", [("easy", True), ("hard", True), ("extreme", False)])
def test_custom_word_difficulty(difficulty, valid):
    result = validate_custom_word({"id": "w1", "user_id": "u1", "word": "moon", "difficulty": difficulty})
    assert result.valid is valid


def test_word_mastery_counts_must_add_up():
    ok = validate_word_mastery({"user_id": "u1", "word": "cat", "correct_count": 2, "wrong_count": 1, "total_seen": 3})
    bad = validate_word_mastery({"user_id": "u1", "word": "cat", "correct_count": 2, "wrong_count": 1, "total_seen": 5})
    assert ok.valid
    assert not bad.valid


def test_mistake_pattern_type_is_checked():
    base = {
        "user_id": "u1", "from_char": "a", "to_char": "o",
        "first_occurrence": "2026-04-01T00:00:00", "last_occurrence": "2026-04-01T00:00:00",
    }
    assert validate_mistake_pattern({**base, "pattern_type": "substitution"}).valid
    assert not validate_mistake_pattern({**base, "pattern_type": "transposition"}).valid


def test_typing_attempt_and_achievement_and_settings():
    assert validate_typing_attempt({
        "id": "a1", "session_id": "s1", "exercise_id": "e1", "user_id": "u1",
        "expected_text": "cat", "typed_text": "cat", "time_taken": 900,
    }).valid
    assert validate_achievement({
        "id": "first_session", "user_id": "u1", "title": "First Steps",
        "description": "d", "icon": "i", "category": "milestone",
    }).valid
    assert not validate_settings({"user_id": "u1", "voice_speed": 0}).valid

"""Tests for snapshot export, import and backup files."""

import copy
import json
from datetime import datetime, timedelta

import pytest

from tutor.core.achievements import achievement_engine
from tutor.core.exceptions import SnapshotFormatError, SnapshotValidationError
from tutor.core.mastery import mastery_classifier
from tutor.core.mistake_patterns import mistake_aggregator
from tutor.core.progress import progress_calculator
from tutor.db.exceptions import RecordNotFoundError
from tutor.db.repositories import (
    achievement_repo,
    custom_word_repo,
    mistake_pattern_repo,
    progress_repo,
    session_repo,
    settings_repo,
    typing_attempt_repo,
    user_repo,
    word_mastery_repo,
)
from tutor.models.snapshot import SNAPSHOT_VERSION
from tutor.services.backup_service import BackupService


@pytest.fixture
def service():
    return BackupService()


async def _populate(db, user_id):
    """Give the user one record of every kind."""
    await settings_repo.update_settings(db, user_id, {"theme": "dark", "voice_speed": 1.25})
    await custom_word_repo.add_word(db, user_id, word="rocket", category="space", difficulty="medium")

    session = await progress_calculator.start_session(user_id, "words", db)
    await mistake_aggregator.record_attempt(
        {
            "session_id": session.id,
            "exercise_id": "ex-1",
            "user_id": user_id,
            "expected_text": "cat",
            "typed_text": "cot",
            "is_correct": False,
            "time_taken": 2000,
            "wpm": 9.0,
            "accuracy": 66.7,
            "mistakes_count": 1,
            "backspace_count": 2,
            "hint_used": False,
        },
        db,
        word_category="animals",
    )
    await progress_calculator.end_session(
        session.id,
        {"total_words": 12, "correct_words": 11, "accuracy": 91.7, "words_per_minute": 21.0},
        db,
    )
    await achievement_engine.check(user_id, db)
    await mastery_classifier.record_comprehension(user_id, "cat", True, db)


async def _counts(db, user_id) -> dict[str, int]:
    return {
        "sessions": len(await session_repo.list_sessions(db, user_id)),
        "progress": len(await progress_repo.list_progress(db, user_id)),
        "achievements": len(await achievement_repo.list_achievements(db, user_id)),
        "custom_words": len(await custom_word_repo.list_words(db, user_id)),
        "typing_attempts": len(await typing_attempt_repo.list_attempts(db, user_id)),
        "user_settings": len(await settings_repo.list_all_settings(db, user_id)),
        "word_mastery": len(await word_mastery_repo.list_words(db, user_id)),
        "mistake_patterns": len(await mistake_pattern_repo.list_patterns(db, user_id)),
    }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


async def test_export_user_contains_every_collection(db, test_user, service):
    await _populate(db, test_user.id)

    document = (await service.export_user(test_user.id, db)).to_document()

    assert document["version"] == SNAPSHOT_VERSION
    assert "exportedAt" in document
    assert [u["id"] for u in document["users"]] == [test_user.id]
    for collection, count in (await _counts(db, test_user.id)).items():
        assert len(document[collection]) == count, collection
    assert document["user_settings"][0]["theme"] == "dark"
    assert document["sessions"][0]["end_time"] is not None


async def test_export_unknown_user_raises_not_found(db, service):
    with pytest.raises(RecordNotFoundError):
        await service.export_user("missing", db)


async def test_export_all_includes_every_user(db, test_user, service):
    await user_repo.create_user(db, "Second Learner")

    snapshot = await service.export_all(db)

    assert len(snapshot.users) == 2


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


async def test_reimporting_own_export_changes_nothing(db, test_user, service):
    await _populate(db, test_user.id)
    before = await _counts(db, test_user.id)
    document = (await service.export_user(test_user.id, db)).to_document()

    summary = await service.import_user(document, test_user.id, db)

    assert await _counts(db, test_user.id) == before
    assert summary.skipped == {}
    # Write-once records already exist
    assert "sessions" not in summary.imported
    assert "achievements" not in summary.imported

    progress = await progress_repo.get_progress(db, test_user.id)
    assert progress.total_words_typed == 12
    word = await word_mastery_repo.get_word(db, test_user.id, "cat")
    assert word.comprehension_correct == 1


async def test_import_restores_deleted_user(db, test_user, service):
    await _populate(db, test_user.id)
    before = await _counts(db, test_user.id)
    document = (await service.export_user(test_user.id, db)).to_document()

    await user_repo.delete_user(db, test_user.id)
    assert await user_repo.get_user_by_id(db, test_user.id) is None

    summary = await service.import_user(document, test_user.id, db)

    assert await _counts(db, test_user.id) == before
    assert summary.imported["sessions"] == 1
    assert summary.imported["typing_attempts"] == 1
    settings = await settings_repo.get_settings_by_user_id(db, test_user.id)
    assert settings.theme == "dark"
    [pattern] = await mistake_pattern_repo.list_patterns(db, test_user.id)
    assert (pattern.from_char, pattern.to_char) == ("a", "o")


async def test_import_only_touches_the_target_user(db, test_user, service):
    other = await user_repo.create_user(db, "Other Learner")
    await _populate(db, other.id)
    document = (await service.export_all(db)).to_document()

    summary = await service.import_user(document, test_user.id, db)

    assert summary.user_id == test_user.id
    assert await session_repo.list_sessions(db, test_user.id) == []


async def test_import_cannot_overwrite_another_users_custom_word(db, test_user, service):
    other = await user_repo.create_user(db, "Other Learner")
    secret = await custom_word_repo.add_word(db, other.id, word="secret")
    document = (await service.export_user(test_user.id, db)).to_document()
    document["custom_words"] = [{"id": secret.id, "user_id": test_user.id, "word": "HIJACKED"}]

    summary = await service.import_user(document, test_user.id, db)

    assert summary.skipped == {"custom_words": 1}
    assert "custom_words" not in summary.imported
    kept = await custom_word_repo.get_word(db, other.id, secret.id)
    assert kept.word == "secret"
    assert kept.user_id == other.id
    assert await custom_word_repo.list_words(db, test_user.id) == []


async def test_import_derives_mastery_level_from_counts(db, test_user, service):
    document = (await service.export_user(test_user.id, db)).to_document()
    document["word_mastery"] = [
        {
            "user_id": test_user.id, "word": "cat", "category": "animals",
            "correct_count": 0, "wrong_count": 5, "total_seen": 5,
            "mastery_level": "mastered", "comprehension_correct": 0, "comprehension_wrong": 0,
        },
    ]

    summary = await service.import_user(document, test_user.id, db)

    assert summary.imported["word_mastery"] == 1
    record = await word_mastery_repo.get_word(db, test_user.id, "cat")
    assert record.mastery_level == "learning"


async def test_import_rejects_bad_snapshot_without_writing(db, test_user, service):
    document = {"version": "9.9.9", "users": "nope"}

    with pytest.raises(SnapshotValidationError) as exc_info:
        await service.import_user(document, test_user.id, db)

    errors = exc_info.value.errors
    assert "Unsupported backup version: 9.9.9" in errors
    assert "Export timestamp is required" in errors
    assert "users must be an array" in errors


async def test_import_skips_invalid_records(db, test_user, service):
    document = (await service.export_user(test_user.id, db)).to_document()
    document["custom_words"] = [
        {"id": "w1", "user_id": test_user.id, "word": "ok"},
        {"id": "w2", "user_id": test_user.id, "word": ""},
    ]

    summary = await service.import_user(document, test_user.id, db)

    assert summary.imported["custom_words"] == 1
    assert summary.skipped["custom_words"] == 1
    assert len(summary.errors) == 1


async def test_import_skips_open_sessions_and_orphan_attempts(db, test_user, service):
    document = (await service.export_user(test_user.id, db)).to_document()
    start = datetime(2026, 2, 1, 9, 0)
    document["sessions"] = [
        {"id": "s-open", "user_id": test_user.id, "start_time": start.isoformat(), "level": "letters"},
    ]
    document["typing_attempts"] = [
        {
            "id": "a1", "session_id": "s-unknown", "exercise_id": "ex", "user_id": test_user.id,
            "expected_text": "a", "typed_text": "a", "time_taken": 100,
        },
    ]

    summary = await service.import_user(document, test_user.id, db)

    assert summary.skipped == {"sessions": 1, "typing_attempts": 1}
    assert await session_repo.get_session_by_id(db, "s-open") is None


async def test_import_accepts_legacy_version_without_new_arrays(db, test_user, service):
    document = (await service.export_user(test_user.id, db)).to_document()
    document["version"] = "1.0.0"
    del document["word_mastery"]
    del document["mistake_patterns"]

    summary = await service.import_user(document, test_user.id, db)

    assert summary.version == "1.0.0"
    assert summary.imported["users"] == 1


async def test_import_for_unknown_user_without_profile_raises(db, test_user, service):
    document = (await service.export_user(test_user.id, db)).to_document()

    with pytest.raises(RecordNotFoundError):
        await service.import_user(document, "stranger", db)


async def test_import_mistake_patterns_with_null_chars(db, test_user, service):
    document = (await service.export_user(test_user.id, db)).to_document()
    now = datetime(2026, 2, 1, 9, 0).isoformat()
    document["mistake_patterns"] = [
        {
            "user_id": test_user.id, "pattern_type": "omission", "from_char": "t", "to_char": None,
            "frequency": 3, "first_occurrence": now, "last_occurrence": now,
        },
    ]

    await service.import_user(document, test_user.id, db)

    [pattern] = await mistake_pattern_repo.list_patterns(db, test_user.id)
    assert pattern.to_char == ""
    assert pattern.frequency == 3


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def test_parse_backup_rejects_non_json(service):
    with pytest.raises(SnapshotFormatError):
        service.parse_backup(b"not json at all")


def test_parse_backup_rejects_non_object(service):
    with pytest.raises(SnapshotFormatError):
        service.parse_backup("[1, 2, 3]")


def test_parse_backup_returns_document(service):
    assert service.parse_backup('{"version": "1.1.0"}') == {"version": "1.1.0"}


# ---------------------------------------------------------------------------
# Backup files
# ---------------------------------------------------------------------------


async def test_write_backup_file_is_complete_json(service, tmp_path):
    document = {"version": SNAPSHOT_VERSION, "exportedAt": "2026-01-01T00:00:00Z", "users": []}

    path = await service.write_backup_file(
        document, label="all", backup_dir=str(tmp_path), clock=lambda: datetime(2026, 1, 1, 3, 0),
    )

    assert path.name == "backup-all-20260101T030000000000.json"
    assert json.loads(path.read_text()) == document
    assert [p.name for p in tmp_path.iterdir()] == [path.name]


async def test_prune_keeps_newest_files(service, tmp_path):
    start = datetime(2026, 1, 1)
    for i in range(5):
        await service.write_backup_file(
            {"n": i}, label="all", backup_dir=str(tmp_path), clock=lambda i=i: start + timedelta(days=i),
        )

    removed = await service.prune_backup_files(label="all", keep=2, backup_dir=str(tmp_path))

    assert removed == 3
    remaining = service.list_backup_files("all", backup_dir=str(tmp_path))
    assert [json.loads(p.read_text())["n"] for p in remaining] == [4, 3]


async def test_failed_write_leaves_no_temp_file(service, tmp_path):
    class Unprintable:
        def __str__(self):
            raise ValueError("cannot serialize")

    with pytest.raises(ValueError):
        await service.write_backup_file({"bad": Unprintable()}, label="all", backup_dir=str(tmp_path))

    assert list(tmp_path.iterdir()) == []
    assert service.list_backup_files("all", backup_dir=str(tmp_path)) == []


async def test_obfuscated_export_roundtrip(db, test_user, service):
    await _populate(db, test_user.id)
    document = (await service.export_user(test_user.id, db)).to_document()

    payload = service.obfuscate_snapshot(copy.deepcopy(document), "hunter2")

    assert service.deobfuscate_snapshot(payload, "hunter2") == document

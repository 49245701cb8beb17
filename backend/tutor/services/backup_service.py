"""Export, import and backup of learner data.

A snapshot is a versioned JSON document holding every record a user (or the
whole installation) owns. Import validates the document shape first and
writes nothing if that fails; after that, records that fail validation are
logged and skipped while the rest are written.

Mutable records (users, settings, progress, custom words, word mastery,
mistake patterns) are upserted by key. Write-once records (achievements,
closed sessions, typing attempts) are only inserted when absent.
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]
from sqlalchemy.ext.asyncio import AsyncSession

from tutor.config import settings
from tutor.core.exceptions import SnapshotFormatError, SnapshotValidationError
from tutor.core.mastery import classify
from tutor.core.validators import RECORD_VALIDATORS, validate_snapshot
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
from tutor.models.snapshot import (
    OPTIONAL_ARRAYS,
    SNAPSHOT_VERSION,
    AchievementRecord,
    CustomWordRecord,
    ExportSnapshot,
    ImportSummary,
    MistakePatternRecord,
    ProgressRecord,
    SessionRecord,
    SettingsRecord,
    TypingAttemptRecord,
    UserRecord,
    WordMasteryRecord,
)
from tutor.services.redis_client import BackupSlot
from tutor.utils.obfuscation import NonSecureObfuscator, obfuscator

logger = logging.getLogger(__name__)

BACKUP_FILE_PREFIX = "backup"


def _owner_of(collection: str, raw: dict) -> Any:
    return raw.get("id") if collection == "users" else raw.get("user_id")


class BackupService:
    """Builds snapshots, restores them and manages backup artifacts."""

    def __init__(self, obfuscation: NonSecureObfuscator = obfuscator) -> None:
        self.obfuscation = obfuscation

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def export_user(self, user_id: str, db: AsyncSession) -> ExportSnapshot:
        """Snapshot of every record owned by one user."""
        user = await user_repo.require_user(db, user_id)
        return await self._build_snapshot(
            db,
            users=[user],
            user_id=user_id,
            attempt_limit=settings.export_user_attempt_limit,
        )

    async def export_all(self, db: AsyncSession) -> ExportSnapshot:
        """Snapshot of the whole installation."""
        users = await user_repo.list_users(db)
        return await self._build_snapshot(
            db,
            users=users,
            user_id=None,
            attempt_limit=settings.export_all_attempt_limit,
        )

    async def _build_snapshot(
        self,
        db: AsyncSession,
        users: list,
        user_id: str | None,
        attempt_limit: int,
    ) -> ExportSnapshot:
        sessions = await session_repo.list_sessions(db, user_id)
        progress = await progress_repo.list_progress(db, user_id)
        achievements = await achievement_repo.list_achievements(db, user_id)
        custom_words = await custom_word_repo.list_words(db, user_id)
        attempts = await typing_attempt_repo.list_attempts(db, user_id, limit=attempt_limit)
        user_settings = await settings_repo.list_all_settings(db, user_id)
        word_mastery = await word_mastery_repo.list_words(db, user_id)
        patterns = await mistake_pattern_repo.list_patterns(db, user_id)

        snapshot = ExportSnapshot(
            version=SNAPSHOT_VERSION,
            exported_at=datetime.now(timezone.utc),
            users=[UserRecord.model_validate(u) for u in users],
            sessions=[SessionRecord.model_validate(s) for s in sessions],
            progress=[ProgressRecord.model_validate(p) for p in progress],
            achievements=[AchievementRecord.model_validate(a) for a in achievements],
            custom_words=[CustomWordRecord.model_validate(w) for w in custom_words],
            typing_attempts=[TypingAttemptRecord.model_validate(a) for a in attempts],
            user_settings=[SettingsRecord.model_validate(s) for s in user_settings],
            word_mastery=[WordMasteryRecord.model_validate(w) for w in word_mastery],
            mistake_patterns=[MistakePatternRecord.model_validate(p) for p in patterns],
        )
        logger.info(
            f"Exported snapshot ({'user ' + user_id if user_id else 'all users'}): "
            f"{len(snapshot.users)} users, {len(snapshot.sessions)} sessions, "
            f"{len(snapshot.typing_attempts)} attempts"
        )
        return snapshot

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def parse_backup(self, raw: str | bytes) -> dict[str, Any]:
        """Parse an uploaded backup file into a document.

        Raises SnapshotFormatError when it is not JSON or not an object.
        """
        try:
            document = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SnapshotFormatError("Failed to parse backup file") from e
        if not isinstance(document, dict):
            raise SnapshotFormatError("Backup file must contain a JSON object")
        return document

    def check_snapshot(self, document: Any) -> None:
        """Raise SnapshotValidationError unless the document has a valid shape."""
        result = validate_snapshot(document)
        if not result.valid:
            logger.warning(f"Rejected backup document: {result.errors}")
            raise SnapshotValidationError(result.errors)

    async def import_user(self, document: Any, user_id: str, db: AsyncSession) -> ImportSummary:
        """Restore one user's records from a snapshot document."""
        self.check_snapshot(document)

        summary = ImportSummary(user_id=user_id, version=document["version"])
        records = self._collect_records(document, user_id, summary)

        if not records["users"] and await user_repo.get_user_by_id(db, user_id) is None:
            raise RecordNotFoundError("User", user_id)

        for record in records["users"]:
            await user_repo.upsert_user(db, record.model_dump())
            self._count(summary.imported, "users")

        for record in records["user_settings"]:
            data = record.model_dump()
            data.pop("user_id")
            await settings_repo.update_settings(db, user_id, data)
            self._count(summary.imported, "user_settings")

        for record in records["progress"]:
            data = record.model_dump()
            data.pop("user_id")
            await progress_repo.upsert_progress(db, user_id, **data)
            self._count(summary.imported, "progress")

        for record in records["custom_words"]:
            if await custom_word_repo.upsert_word(db, record.model_dump()) is None:
                self._skip(summary, "custom_words", f"custom_word {record.id}: id belongs to another user")
                continue
            self._count(summary.imported, "custom_words")

        for record in records["sessions"]:
            if record.end_time is None:
                self._skip(summary, "sessions", f"session {record.id}: open sessions are not imported")
                continue
            if await session_repo.insert_session_if_absent(db, record.model_dump()):
                self._count(summary.imported, "sessions")

        for record in records["achievements"]:
            if await achievement_repo.insert_achievement_if_absent(db, record.model_dump()):
                self._count(summary.imported, "achievements")

        for record in records["typing_attempts"]:
            session = await session_repo.get_session_by_id(db, record.session_id)
            if session is None or session.user_id != user_id:
                self._skip(summary, "typing_attempts", f"typing_attempt {record.id}: unknown session {record.session_id}")
                continue
            if await typing_attempt_repo.insert_attempt_if_absent(db, record.model_dump()):
                self._count(summary.imported, "typing_attempts")

        for record in records["word_mastery"]:
            data = record.model_dump()
            # the level is derived from the counters, never taken from the document
            data["mastery_level"] = classify(
                record.correct_count,
                record.total_seen,
                record.comprehension_correct,
                record.comprehension_wrong,
            ).value
            await word_mastery_repo.upsert_word(db, data)
            self._count(summary.imported, "word_mastery")

        for record in records["mistake_patterns"]:
            await mistake_pattern_repo.import_pattern(db, record.model_dump())
            self._count(summary.imported, "mistake_patterns")

        logger.info(
            f"Imported snapshot v{summary.version} for user {user_id}: "
            f"imported={summary.imported} skipped={summary.skipped}"
        )
        return summary

    def _collect_records(self, document: dict, user_id: str, summary: ImportSummary) -> dict[str, list]:
        """Validate the user's records per collection, dropping invalid ones."""
        records: dict[str, list] = {}
        for collection, validator in RECORD_VALIDATORS.items():
            records[collection] = []
            if collection in OPTIONAL_ARRAYS and collection not in document:
                continue
            for raw in document[collection]:
                if isinstance(raw, dict) and _owner_of(collection, raw) != user_id:
                    continue
                result = validator(raw)
                if not result.valid:
                    self._skip(summary, collection, "; ".join(result.errors))
                    continue
                records[collection].append(result.record)
        return records

    @staticmethod
    def _count(counter: dict[str, int], collection: str) -> None:
        counter[collection] = counter.get(collection, 0) + 1

    def _skip(self, summary: ImportSummary, collection: str, reason: str) -> None:
        logger.warning(f"Skipping {collection} record during import for user {summary.user_id}: {reason}")
        self._count(summary.skipped, collection)
        summary.errors.append(reason)

    # ------------------------------------------------------------------
    # Obfuscated payloads
    # ------------------------------------------------------------------

    def obfuscate_snapshot(self, document: dict[str, Any], passphrase: str) -> str:
        return self.obfuscation.obfuscate_snapshot(document, passphrase)

    def deobfuscate_snapshot(self, payload: str, passphrase: str) -> dict[str, Any]:
        return self.obfuscation.deobfuscate_snapshot(payload, passphrase)

    # ------------------------------------------------------------------
    # Backup artifacts
    # ------------------------------------------------------------------

    async def write_backup_file(
        self,
        document: dict[str, Any],
        label: str = "all",
        backup_dir: str | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> Path:
        """Write a snapshot document as a downloadable JSON file.

        The file appears under its final name only once fully written.
        """
        directory = Path(backup_dir or settings.backup_dir)
        await aiofiles.os.makedirs(directory, exist_ok=True)

        filename = f"{BACKUP_FILE_PREFIX}-{label}-{clock():%Y%m%dT%H%M%S%f}.json"
        final_path = directory / filename
        temp_path = directory / f".{filename}.tmp"

        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(document, indent=2, default=str))
            await aiofiles.os.replace(temp_path, final_path)
        except Exception:
            logger.error(f"Failed to write backup file {final_path}", exc_info=True)
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.unlink(temp_path)
            raise

        logger.info(f"Wrote backup file {final_path}")
        return final_path

    def list_backup_files(self, label: str | None = None, backup_dir: str | None = None) -> list[Path]:
        """Backup files, newest first."""
        directory = Path(backup_dir or settings.backup_dir)
        if not directory.exists():
            return []
        pattern = f"{BACKUP_FILE_PREFIX}-{label}-*.json" if label else f"{BACKUP_FILE_PREFIX}-*.json"
        return sorted(directory.glob(pattern), key=lambda p: p.name, reverse=True)

    async def prune_backup_files(
        self,
        label: str = "all",
        keep: int | None = None,
        backup_dir: str | None = None,
    ) -> int:
        """Delete all but the newest `keep` files for a label."""
        keep = settings.backup_files_kept if keep is None else keep
        removed = 0
        for path in self.list_backup_files(label, backup_dir)[keep:]:
            await aiofiles.os.unlink(path)
            removed += 1
            logger.info(f"Pruned old backup file: {path.name}")
        return removed

    async def create_backup(
        self,
        db: AsyncSession,
        slot: BackupSlot | None = None,
        user_id: str | None = None,
    ) -> dict[str, Any]:
        """Export, store in the backup slot (when given), write a file and prune old ones."""
        snapshot = await (self.export_user(user_id, db) if user_id else self.export_all(db))
        document = snapshot.to_document()
        if slot is not None:
            await slot.save(document, user_id=user_id)
        label = user_id or "all"
        await self.write_backup_file(document, label=label)
        await self.prune_backup_files(label=label)
        return document


backup_service = BackupService()

"""Record and snapshot validators.

Every validator returns a ValidationResult and never raises, so import can
log and skip a bad record while keeping the rest of the document.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from tutor.models.snapshot import (
    OPTIONAL_ARRAYS,
    REQUIRED_ARRAYS,
    SUPPORTED_VERSIONS,
    AchievementRecord,
    CustomWordRecord,
    MistakePatternRecord,
    ProgressRecord,
    SessionRecord,
    SettingsRecord,
    TypingAttemptRecord,
    UserRecord,
    WordMasteryRecord,
)

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    record: BaseModel | None = None


def _format_errors(label: str, exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        prefix = f"{label}.{location}" if location else label
        messages.append(f"{prefix}: {err['msg']}")
    return messages


def _validate(label: str, schema: type[BaseModel], data: Any) -> ValidationResult:
    if not isinstance(data, dict):
        return ValidationResult(False, [f"{label} must be an object"])
    try:
        record = schema.model_validate(data)
    except ValidationError as exc:
        return ValidationResult(False, _format_errors(label, exc))
    return ValidationResult(True, [], record)


def validate_user(data: Any) -> ValidationResult:
    return _validate("user", UserRecord, data)


def validate_session(data: Any) -> ValidationResult:
    return _validate("session", SessionRecord, data)


def validate_settings(data: Any) -> ValidationResult:
    return _validate("user_settings", SettingsRecord, data)


def validate_progress(data: Any) -> ValidationResult:
    return _validate("progress", ProgressRecord, data)


def validate_achievement(data: Any) -> ValidationResult:
    return _validate("achievement", AchievementRecord, data)


def validate_custom_word(data: Any) -> ValidationResult:
    return _validate("custom_word", CustomWordRecord, data)


def validate_typing_attempt(data: Any) -> ValidationResult:
    return _validate("typing_attempt", TypingAttemptRecord, data)


def validate_word_mastery(data: Any) -> ValidationResult:
    return _validate("word_mastery", WordMasteryRecord, data)


def validate_mistake_pattern(data: Any) -> ValidationResult:
    return _validate("mistake_pattern", MistakePatternRecord, data)


RECORD_VALIDATORS = {
    "users": validate_user,
    "sessions": validate_session,
    "user_settings": validate_settings,
    "progress": validate_progress,
    "achievements": validate_achievement,
    "custom_words": validate_custom_word,
    "typing_attempts": validate_typing_attempt,
    "word_mastery": validate_word_mastery,
    "mistake_patterns": validate_mistake_pattern,
}


def parse_exported_at(value: Any) -> datetime | None:
    """Parse an `exportedAt` value; None when it is missing or unreadable."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def validate_snapshot(data: Any) -> ValidationResult:
    """Check the document shape only; individual records are validated on import."""
    if not isinstance(data, dict):
        return ValidationResult(False, ["Backup must be a JSON object"])

    errors: list[str] = []
    version = data.get("version")
    if not version:
        errors.append("Backup version is required")
    elif version not in SUPPORTED_VERSIONS:
        errors.append(f"Unsupported backup version: {version}")

    if "exportedAt" not in data or data["exportedAt"] in (None, ""):
        errors.append("Export timestamp is required")
    elif parse_exported_at(data["exportedAt"]) is None:
        errors.append("Export timestamp must be an ISO 8601 date-time")

    for name in REQUIRED_ARRAYS:
        if not isinstance(data.get(name), list):
            errors.append(f"{name} must be an array")
    for name in OPTIONAL_ARRAYS:
        if name in data and not isinstance(data[name], list):
            errors.append(f"{name} must be an array")

    return ValidationResult(not errors, errors)

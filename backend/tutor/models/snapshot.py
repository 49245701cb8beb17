"""Export snapshot models.

Each record schema describes one row as it appears in a backup document.
They are used in both directions: ORM rows are dumped through them on export,
and raw dicts are validated through them on import.
"""

from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SNAPSHOT_VERSION = "1.1.0"
SUPPORTED_VERSIONS = frozenset({"1.0.0", "1.1.0"})

# Arrays every supported version carries, and arrays added in 1.1.0
REQUIRED_ARRAYS = (
    "users",
    "sessions",
    "progress",
    "achievements",
    "custom_words",
    "typing_attempts",
    "user_settings",
)
OPTIONAL_ARRAYS = ("word_mastery", "mistake_patterns")


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def _naive_utc(cls, value: object) -> object:
        # Timestamps are stored as naive UTC
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class UserRecord(_Record):
    id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=255)
    age: int | None = Field(default=None, ge=0)
    avatar: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SessionRecord(_Record):
    id: str = Field(min_length=1, max_length=36)
    user_id: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime | None = None
    level: str = Field(min_length=1)
    total_words: int = Field(default=0, ge=0)
    correct_words: int = Field(default=0, ge=0)
    accuracy: float = Field(default=100.0, ge=0, le=100)
    words_per_minute: float = Field(default=0.0, ge=0)


class SettingsRecord(_Record):
    user_id: str = Field(min_length=1)
    theme: str = "light"
    font_size: str = "medium"
    sound_enabled: bool = True
    music_enabled: bool = False
    reduced_motion: bool = False
    dyslexic_font: bool = False
    voice_gender: str = "neutral"
    voice_speed: float = Field(default=1.0, gt=0)


class ProgressRecord(_Record):
    user_id: str = Field(min_length=1)
    current_level: str = "letters"
    total_sessions: int = Field(default=0, ge=0)
    total_words_typed: int = Field(default=0, ge=0)
    average_accuracy: float = Field(default=0.0, ge=0, le=100)
    average_wpm: float = Field(default=0.0, ge=0)
    streak: int = Field(default=0, ge=0)
    last_session_date: date | None = None

    @field_validator("last_session_date", mode="before")
    @classmethod
    def _date_part(cls, value: object) -> object:
        # Older backups store a full timestamp here
        if isinstance(value, str) and len(value) > 10:
            return value[:10]
        if isinstance(value, datetime):
            return value.date()
        return value


class AchievementRecord(_Record):
    id: str = Field(min_length=1, max_length=50)
    user_id: str = Field(min_length=1)
    title: str
    description: str
    icon: str
    category: str
    unlocked_at: datetime | None = None


class CustomWordRecord(_Record):
    id: str = Field(min_length=1, max_length=36)
    user_id: str = Field(min_length=1)
    word: str = Field(min_length=1, max_length=100)
    category: str | None = None
    difficulty: Literal["easy", "medium", "hard"] = "easy"
    image_url: str | None = None
    pronunciation_url: str | None = None
    times_practiced: int = Field(default=0, ge=0)
    last_practiced_at: datetime | None = None
    created_at: datetime | None = None


class TypingAttemptRecord(_Record):
    id: str = Field(min_length=1, max_length=36)
    session_id: str = Field(min_length=1)
    exercise_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    expected_text: str
    typed_text: str
    is_correct: bool = False
    time_taken: int = Field(ge=0)
    wpm: float = Field(default=0.0, ge=0)
    accuracy: float = Field(default=0.0, ge=0, le=100)
    mistakes_count: int = Field(default=0, ge=0)
    backspace_count: int = Field(default=0, ge=0)
    hint_used: bool = False
    timestamp: datetime | None = None


class WordMasteryRecord(_Record):
    user_id: str = Field(min_length=1)
    word: str = Field(min_length=1, max_length=100)
    category: str = ""
    correct_count: int = Field(default=0, ge=0)
    wrong_count: int = Field(default=0, ge=0)
    total_seen: int = Field(default=0, ge=0)
    last_seen_at: datetime | None = None
    mastery_level: Literal["new", "learning", "reviewing", "mastered"] = "new"
    comprehension_correct: int = Field(default=0, ge=0)
    comprehension_wrong: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _counts_add_up(self) -> "WordMasteryRecord":
        if self.total_seen != self.correct_count + self.wrong_count:
            raise ValueError("total_seen must equal correct_count + wrong_count")
        return self


class MistakePatternRecord(_Record):
    user_id: str = Field(min_length=1)
    pattern_type: Literal["substitution", "omission"]
    from_char: str = ""
    to_char: str = ""
    word_context: str | None = None
    frequency: int = Field(default=1, ge=1)
    first_occurrence: datetime
    last_occurrence: datetime

    @field_validator("from_char", "to_char", mode="before")
    @classmethod
    def _null_char(cls, value: object) -> object:
        return "" if value is None else value


class ExportSnapshot(BaseModel):
    """A versioned bundle of records, serialized with `exportedAt` in camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = SNAPSHOT_VERSION
    exported_at: datetime = Field(alias="exportedAt")
    users: list[UserRecord] = []
    sessions: list[SessionRecord] = []
    progress: list[ProgressRecord] = []
    achievements: list[AchievementRecord] = []
    custom_words: list[CustomWordRecord] = []
    typing_attempts: list[TypingAttemptRecord] = []
    user_settings: list[SettingsRecord] = []
    word_mastery: list[WordMasteryRecord] = []
    mistake_patterns: list[MistakePatternRecord] = []

    def to_document(self) -> dict:
        """JSON-ready dict with ISO timestamps and the `exportedAt` key."""
        return self.model_dump(mode="json", by_alias=True)


class ImportSummary(BaseModel):
    """Per-collection counts of rows written and records skipped."""

    user_id: str
    version: str
    imported: dict[str, int] = {}
    skipped: dict[str, int] = {}
    errors: list[str] = []


class ObfuscatedBackup(BaseModel):
    """An obfuscated snapshot payload and the passphrase that reverses it."""

    payload: str
    passphrase: str = Field(min_length=1)


class ObfuscateRequest(BaseModel):
    passphrase: str = Field(min_length=1)


class MergeRequest(BaseModel):
    local: dict
    remote: dict


class BackupStatus(BaseModel):
    last_backup_at: datetime | None = None
    backup_files: list[str] = []

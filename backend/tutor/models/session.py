"""Practice session and typing attempt models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SessionStart(BaseModel):
    """Open a session at a level; a client-generated id is accepted."""

    level: str = Field(min_length=1, max_length=50)
    session_id: str | None = Field(default=None, max_length=36)


class SessionEnd(BaseModel):
    """Final statistics reported when a session is closed."""

    total_words: int = Field(ge=0)
    correct_words: int = Field(ge=0)
    accuracy: float = Field(ge=0, le=100)
    words_per_minute: float = Field(ge=0)
    end_time: datetime | None = None

    @model_validator(mode="after")
    def _correct_within_total(self) -> "SessionEnd":
        if self.correct_words > self.total_words:
            raise ValueError("correct_words cannot exceed total_words")
        return self


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    start_time: datetime
    end_time: datetime | None = None
    level: str
    total_words: int
    correct_words: int
    accuracy: float
    words_per_minute: float


class TypingAttemptCreate(BaseModel):
    """One exercise attempt. `word_category` also counts the text toward word mastery."""

    session_id: str
    exercise_id: str = Field(min_length=1, max_length=100)
    expected_text: str
    typed_text: str
    is_correct: bool
    time_taken: int = Field(ge=0, description="Milliseconds")
    wpm: float = Field(default=0.0, ge=0)
    accuracy: float = Field(default=0.0, ge=0, le=100)
    mistakes_count: int = Field(default=0, ge=0)
    backspace_count: int = Field(default=0, ge=0)
    hint_used: bool = False
    word_category: str | None = None


class TypingAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    exercise_id: str
    user_id: str
    expected_text: str
    typed_text: str
    is_correct: bool
    time_taken: int
    wpm: float
    accuracy: float
    mistakes_count: int
    backspace_count: int
    hint_used: bool
    timestamp: datetime

"""Progress, achievement, mastery and mistake pattern models."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    current_level: str
    total_sessions: int
    total_words_typed: int
    average_accuracy: float
    average_wpm: float
    streak: int
    last_session_date: date | None = None


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: str
    icon: str
    category: str
    unlocked_at: datetime


class SessionCloseResult(BaseModel):
    """Returned when a session closes: the refreshed summary plus anything newly unlocked."""

    session_id: str
    progress: ProgressResponse
    new_achievements: list[AchievementResponse] = []


# Word mastery

class TypingEvent(BaseModel):
    word: str = Field(min_length=1, max_length=100)
    category: str = ""
    correct: bool


class ComprehensionEvent(BaseModel):
    word: str = Field(min_length=1, max_length=100)
    correct: bool


class WordMasteryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    word: str
    category: str
    correct_count: int
    wrong_count: int
    total_seen: int
    last_seen_at: datetime | None = None
    mastery_level: str
    comprehension_correct: int
    comprehension_wrong: int


class MasteryStats(BaseModel):
    new: int = 0
    learning: int = 0
    reviewing: int = 0
    mastered: int = 0
    total: int = 0


# Mistake patterns

class CompareRequest(BaseModel):
    expected: str
    typed: str


class MistakePatternResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pattern_type: str
    from_char: str
    to_char: str
    word_context: str | None = None
    frequency: int
    first_occurrence: datetime
    last_occurrence: datetime


class CommonMistake(BaseModel):
    from_char: str
    to_char: str
    pattern_type: str
    total_frequency: int

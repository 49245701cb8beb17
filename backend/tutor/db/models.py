"""SQLAlchemy ORM models."""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class User(Base):
    """Learner profile."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    settings: Mapped["UserSettings"] = relationship(back_populates="user", uselist=False, cascade="all, delete-orphan")
    sessions: Mapped[list["PracticeSession"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    progress: Mapped["Progress"] = relationship(back_populates="user", uselist=False, cascade="all, delete-orphan")
    achievements: Mapped[list["Achievement"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    word_mastery: Mapped[list["WordMastery"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    mistake_patterns: Mapped[list["MistakePattern"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    custom_words: Mapped[list["CustomWord"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    typing_attempts: Mapped[list["TypingAttempt"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class UserSettings(Base):
    """Per-user presentation preferences (one row per user)."""

    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    # Appearance
    theme: Mapped[str] = mapped_column(String(20), nullable=False, default="light")
    font_size: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    dyslexic_font: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reduced_motion: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Audio
    sound_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    music_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    voice_gender: Mapped[str] = mapped_column(String(20), nullable=False, default="neutral")
    voice_speed: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    user: Mapped["User"] = relationship(back_populates="settings")


class PracticeSession(Base):
    """A typing session; open while end_time is null, immutable once closed."""

    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_user_id", "user_id"),
        Index("idx_sessions_start_time", "start_time"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    end_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    level: Mapped[str] = mapped_column(String(50), nullable=False)
    total_words: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_words: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)
    words_per_minute: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    user: Mapped["User"] = relationship(back_populates="sessions")
    typing_attempts: Mapped[list["TypingAttempt"]] = relationship(back_populates="session", cascade="all, delete-orphan")


class Progress(Base):
    """Derived progress summary, fully recomputed from closed sessions."""

    __tablename__ = "progress"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    current_level: Mapped[str] = mapped_column(String(50), nullable=False, default="letters")
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_words_typed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_wpm: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_session_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    user: Mapped["User"] = relationship(back_populates="progress")


class Achievement(Base):
    """An unlocked achievement; write-once per (user_id, id)."""

    __tablename__ = "achievements"
    __table_args__ = (Index("idx_achievements_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    icon: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="achievements")


class WordMastery(Base):
    """Per-word typing and comprehension counters with a derived mastery level."""

    __tablename__ = "word_mastery"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    word: Mapped[str] = mapped_column(String(100), primary_key=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_seen: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    mastery_level: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
    comprehension_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comprehension_wrong: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped["User"] = relationship(back_populates="word_mastery")


class MistakePattern(Base):
    """Running frequency of one character-level mistake for a user."""

    __tablename__ = "mistake_patterns"
    __table_args__ = (
        UniqueConstraint("user_id", "pattern_type", "from_char", "to_char", name="uq_mistake_pattern_key"),
        Index("idx_mistake_patterns_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pattern_type: Mapped[str] = mapped_column(String(20), nullable=False)
    from_char: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    to_char: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    word_context: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    first_occurrence: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    last_occurrence: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="mistake_patterns")


class CacheEntry(Base):
    """Process-wide key/value cache row with optional expiry."""

    __tablename__ = "cache"
    __table_args__ = (Index("idx_cache_expires_at", "expires_at"),)

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class CustomWord(Base):
    """A word added to a learner's personal practice list."""

    __tablename__ = "custom_words"
    __table_args__ = (Index("idx_custom_words_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    word: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(10), nullable=False, default="easy")
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pronunciation_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    times_practiced: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="custom_words")


class TypingAttempt(Base):
    """One exercise attempt inside a session."""

    __tablename__ = "typing_attempts"
    __table_args__ = (
        Index("idx_typing_attempts_user_id", "user_id"),
        Index("idx_typing_attempts_session_id", "session_id"),
        Index("idx_typing_attempts_timestamp", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str] = mapped_column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    exercise_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expected_text: Mapped[str] = mapped_column(Text, nullable=False)
    typed_text: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_taken: Mapped[int] = mapped_column(Integer, nullable=False)
    wpm: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    mistakes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    backspace_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hint_used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(back_populates="typing_attempts")
    session: Mapped["PracticeSession"] = relationship(back_populates="typing_attempts")

"""Initial progress engine schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates every table the progress engine persists:

- users / user_settings: learner profiles and presentation preferences
- sessions: practice sessions, immutable once end_time is set
- progress: derived per-user summary (recomputed, never incremented)
- achievements: write-once unlocks keyed by (id, user_id)
- word_mastery: per-user word counters keyed by (user_id, word)
- mistake_patterns: running mistake frequencies, unique per
  (user_id, pattern_type, from_char, to_char)
- cache: process-wide key/value entries with optional expiry
- custom_words / typing_attempts: personal word lists and exercise attempts

All user-owned tables cascade on user deletion.
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _user_fk(primary_key: bool = False) -> sa.Column:
    return sa.Column(
        "user_id",
        sa.String(36),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        primary_key=primary_key,
    )


def upgrade() -> None:
    # users
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("avatar", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )

    # user_settings
    op.create_table(
        "user_settings",
        _user_fk(primary_key=True),
        sa.Column("theme", sa.String(20), nullable=False, server_default="light"),
        sa.Column("font_size", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("dyslexic_font", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("reduced_motion", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("sound_enabled", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("music_enabled", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("voice_gender", sa.String(20), nullable=False, server_default="neutral"),
        sa.Column("voice_speed", sa.Float, nullable=False, server_default="1.0"),
    )

    # sessions
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column("start_time", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("end_time", sa.DateTime, nullable=True),
        sa.Column("level", sa.String(50), nullable=False),
        sa.Column("total_words", sa.Integer, nullable=False, server_default="0"),
        sa.Column("correct_words", sa.Integer, nullable=False, server_default="0"),
        sa.Column("accuracy", sa.Float, nullable=False, server_default="100.0"),
        sa.Column("words_per_minute", sa.Float, nullable=False, server_default="0.0"),
    )
    op.create_index("idx_sessions_user_id", "sessions", ["user_id"])
    op.create_index("idx_sessions_start_time", "sessions", ["start_time"])

    # progress
    op.create_table(
        "progress",
        _user_fk(primary_key=True),
        sa.Column("current_level", sa.String(50), nullable=False, server_default="letters"),
        sa.Column("total_sessions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_words_typed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("average_accuracy", sa.Float, nullable=False, server_default="0.0"),
        sa.Column("average_wpm", sa.Float, nullable=False, server_default="0.0"),
        sa.Column("streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_session_date", sa.Date, nullable=True),
    )

    # achievements
    op.create_table(
        "achievements",
        sa.Column("id", sa.String(50), primary_key=True),
        _user_fk(primary_key=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("icon", sa.String(20), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("unlocked_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_achievements_user_id", "achievements", ["user_id"])

    # word_mastery
    op.create_table(
        "word_mastery",
        _user_fk(primary_key=True),
        sa.Column("word", sa.String(100), primary_key=True),
        sa.Column("category", sa.String(50), nullable=False, server_default=""),
        sa.Column("correct_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("wrong_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_seen", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_seen_at", sa.DateTime, nullable=True),
        sa.Column("mastery_level", sa.String(20), nullable=False, server_default="new"),
        sa.Column("comprehension_correct", sa.Integer, nullable=False, server_default="0"),
        sa.Column("comprehension_wrong", sa.Integer, nullable=False, server_default="0"),
    )

    # mistake_patterns
    op.create_table(
        "mistake_patterns",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        _user_fk(),
        sa.Column("pattern_type", sa.String(20), nullable=False),
        sa.Column("from_char", sa.String(8), nullable=False, server_default=""),
        sa.Column("to_char", sa.String(8), nullable=False, server_default=""),
        sa.Column("word_context", sa.Text, nullable=True),
        sa.Column("frequency", sa.Integer, nullable=False, server_default="1"),
        sa.Column("first_occurrence", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("last_occurrence", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "pattern_type", "from_char", "to_char", name="uq_mistake_pattern_key"),
    )
    op.create_index("idx_mistake_patterns_user_id", "mistake_patterns", ["user_id"])

    # cache
    op.create_table(
        "cache",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime, nullable=True),
    )
    op.create_index("idx_cache_expires_at", "cache", ["expires_at"])

    # custom_words
    op.create_table(
        "custom_words",
        sa.Column("id", sa.String(36), primary_key=True),
        _user_fk(),
        sa.Column("word", sa.String(100), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("difficulty", sa.String(10), nullable=False, server_default="easy"),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("pronunciation_url", sa.String(500), nullable=True),
        sa.Column("times_practiced", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_practiced_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_custom_words_user_id", "custom_words", ["user_id"])

    # typing_attempts
    op.create_table(
        "typing_attempts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("exercise_id", sa.String(100), nullable=False),
        _user_fk(),
        sa.Column("expected_text", sa.Text, nullable=False),
        sa.Column("typed_text", sa.Text, nullable=False),
        sa.Column("is_correct", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("time_taken", sa.Integer, nullable=False),
        sa.Column("wpm", sa.Float, nullable=False, server_default="0.0"),
        sa.Column("accuracy", sa.Float, nullable=False, server_default="0.0"),
        sa.Column("mistakes_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("backspace_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("hint_used", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("timestamp", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_typing_attempts_user_id", "typing_attempts", ["user_id"])
    op.create_index("idx_typing_attempts_session_id", "typing_attempts", ["session_id"])
    op.create_index("idx_typing_attempts_timestamp", "typing_attempts", ["timestamp"])


def downgrade() -> None:
    op.drop_table("typing_attempts")
    op.drop_table("custom_words")
    op.drop_index("idx_cache_expires_at", table_name="cache")
    op.drop_table("cache")
    op.drop_table("mistake_patterns")
    op.drop_table("word_mastery")
    op.drop_table("achievements")
    op.drop_table("progress")
    op.drop_table("sessions")
    op.drop_table("user_settings")
    op.drop_table("users")

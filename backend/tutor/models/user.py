"""User, settings and custom word models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(w.title() for w in parts[1:])


Difficulty = Literal["easy", "medium", "hard"]


class UserCreate(BaseModel):
    """Schema for creating a learner profile."""

    name: str = Field(min_length=1, max_length=255)
    age: int | None = Field(default=None, ge=0)
    avatar: str | None = None


class UserUpdate(BaseModel):
    """Schema for updating a learner profile."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    age: int | None = Field(default=None, ge=0)
    avatar: str | None = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    age: int | None = None
    avatar: str | None = None
    created_at: datetime
    updated_at: datetime


class UserSettings(BaseModel):
    """Presentation preferences, serialized in camelCase for the frontend."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    # Appearance
    theme: str = "light"
    font_size: str = "medium"
    dyslexic_font: bool = False
    reduced_motion: bool = False

    # Audio
    sound_enabled: bool = True
    music_enabled: bool = False
    voice_gender: str = "neutral"
    voice_speed: float = Field(default=1.0, gt=0, le=4.0)


class UserSettingsUpdate(BaseModel):
    """Partial settings update; omitted fields stay unchanged."""

    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True)

    theme: str | None = None
    font_size: str | None = None
    dyslexic_font: bool | None = None
    reduced_motion: bool | None = None
    sound_enabled: bool | None = None
    music_enabled: bool | None = None
    voice_gender: str | None = None
    voice_speed: float | None = Field(default=None, gt=0, le=4.0)


class CustomWordCreate(BaseModel):
    word: str = Field(min_length=1, max_length=100)
    category: str | None = None
    difficulty: Difficulty = "easy"
    image_url: str | None = None
    pronunciation_url: str | None = None


class CustomWordUpdate(BaseModel):
    word: str | None = Field(default=None, min_length=1, max_length=100)
    category: str | None = None
    difficulty: Difficulty | None = None
    image_url: str | None = None
    pronunciation_url: str | None = None


class CustomWordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    word: str
    category: str | None = None
    difficulty: str
    image_url: str | None = None
    pronunciation_url: str | None = None
    times_practiced: int
    last_practiced_at: datetime | None = None
    created_at: datetime

"""Tests for repository error handling."""

import logging
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from tutor.db.exceptions import (
    ConnectionError,
    DatabaseError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from tutor.db.repositories import custom_word_repo, session_repo, user_repo


async def test_duplicate_user_id_raises_error(db, test_user):
    """Creating a second user with an existing id should raise DuplicateRecordError."""
    db.expunge(test_user)

    with pytest.raises(DuplicateRecordError, match="already exists"):
        await user_repo.create_user(db, "Clone", user_id=test_user.id)


async def test_repository_logs_errors(db, test_user, caplog):
    """Repository errors should be logged before being re-raised."""
    caplog.set_level(logging.ERROR)
    db.expunge(test_user)

    with pytest.raises(DuplicateRecordError):
        await user_repo.create_user(db, "Clone", user_id=test_user.id)

    assert "Duplicate user" in caplog.text
    assert test_user.id in caplog.text


async def test_get_user_by_id_returns_none_for_missing(db):
    assert await user_repo.get_user_by_id(db, "nonexistent-id") is None


async def test_require_user_raises_not_found(db):
    with pytest.raises(RecordNotFoundError) as exc_info:
        await user_repo.require_user(db, "nonexistent-id")
    assert exc_info.value.entity == "User"
    assert exc_info.value.key == "nonexistent-id"


async def test_not_found_is_a_database_error(db):
    with pytest.raises(DatabaseError):
        await custom_word_repo.get_word(db, "u1", "missing-word")


async def test_operational_error_becomes_connection_error(db):
    db.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")))

    with pytest.raises(ConnectionError, match="Database connection failed"):
        await session_repo.get_session_by_id(db, "s1")


async def test_unexpected_error_becomes_database_error(db):
    db.execute = AsyncMock(side_effect=RuntimeError("driver exploded"))

    with pytest.raises(DatabaseError, match="Failed to list users"):
        await user_repo.list_users(db)

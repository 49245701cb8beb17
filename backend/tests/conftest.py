"""Shared test fixtures for the typing tutor backend tests."""

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tutor.db.models import Base, User
from tutor.db.repositories import settings_repo


# Use an in-memory SQLite database for tests.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@event.listens_for(engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def tables():
    """Create all tables for one test and drop them afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db(tables) -> AsyncSession:
    """Yield a fresh async session for each test."""
    async with TestSessionFactory() as session:
        yield session


@pytest_asyncio.fixture
async def test_user(db: AsyncSession) -> User:
    """Create and return a test user with default settings."""
    user = User(id=str(uuid.uuid4()), name="Test Learner", age=8)
    db.add(user)
    await db.flush()
    await settings_repo.create_default_settings(db, user.id)
    return user


@pytest_asyncio.fixture
async def client(db: AsyncSession):
    """HTTP client against the app, sharing the test session and acting as the demo user."""
    from tutor.api.dependencies import get_db
    from tutor.main import app

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def session_factory(tables):
    """Session factory bound to the test database, for components that open their own sessions."""
    return TestSessionFactory

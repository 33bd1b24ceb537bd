from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vibereader.config.logging import setup_logging
from vibereader.config.settings import Settings
from vibereader.infra.database import Database
from vibereader.main import create_app
from vibereader.v1.feeds.models import Feed
from vibereader.v1.infra.jobs.models import Job, utcnow
from vibereader.v1.infra.jobs.service import JobQueue


def make_settings(database_url: str, **overrides: Any) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    values: dict[str, Any] = {
        "database_url": database_url,
        "jobs_enabled": True,
        "log_level": "WARNING",
        "environment": "development",
        "auth_mode": "none",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(scope="session", autouse=True)
def quiet_logging():
    """Route structlog through stdlib logging for the whole session."""
    setup_logging(make_settings("sqlite+aiosqlite:///:memory:"))


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'vibereader.db'}"


@pytest.fixture
def settings(database_url) -> Settings:
    return make_settings(database_url)


@pytest.fixture
def settings_with(database_url) -> Callable[..., Settings]:
    """Build settings for the test database with some fields overridden."""
    return lambda **overrides: make_settings(database_url, **overrides)


@pytest.fixture
async def database(settings) -> AsyncGenerator[Database, None]:
    """Create a fresh database with all tables for each test."""
    database = Database(settings)
    await database.create_all()
    yield database
    await database.close()


@pytest.fixture
def session_factory(database) -> async_sessionmaker[AsyncSession]:
    return database.SessionLocal


@pytest.fixture
def queue(session_factory, settings) -> JobQueue:
    return JobQueue(session_factory, settings)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_feed(session_factory) -> Callable[..., Awaitable[Feed]]:
    """Factory inserting a feed row."""

    async def _make_feed(
        url: str = "https://example.com/feed.xml",
        last_fetched: datetime | None = None,
        user_id: int = 1,
        title: str = "",
    ) -> Feed:
        async with session_factory() as session:
            feed = Feed(
                user_id=user_id, url=url, title=title, last_fetched=last_fetched
            )
            session.add(feed)
            await session.commit()
            return feed

    return _make_feed


@pytest.fixture
def set_job_fields(session_factory) -> Callable[..., Awaitable[None]]:
    """Overwrite columns of a job, for putting it into a given state."""

    async def _set_job_fields(job_id: int, **values: Any) -> None:
        async with session_factory() as session:
            await session.execute(update(Job).where(Job.id == job_id).values(**values))
            await session.commit()

    return _set_job_fields


@pytest.fixture
def days_ago() -> Callable[[int], datetime]:
    return lambda days: utcnow() - timedelta(days=days)


@pytest.fixture
def app(settings, database):
    """Create a test FastAPI application bound to the test database."""
    return create_app(settings, database)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

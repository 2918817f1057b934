"""Shared fixtures: a file-backed SQLite database per test.

The engine runs in WAL mode with SQLAlchemy emitting BEGIN itself, which
gives working SAVEPOINTs and lets two concurrent writers queue on the
busy timeout the way row locks make them queue on PostgreSQL.
"""

import os

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("DISCORD_WEBHOOK_URL", "")

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from promoboard.models import Base, Listing
from promoboard.services.background import drain_background_tasks


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'promoboard.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await drain_background_tasks()
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_listing(session_factory):
    """Factory fixture: insert a listing and return its id."""

    async def _make(
        name: str = "Test Server",
        tier: str = "free",
        member_count: int = 100,
        listing_type: str = "server",
        owner_id: uuid.UUID = None,
        last_bumped_at: datetime = None,
    ) -> uuid.UUID:
        listing = Listing(
            id=uuid.uuid4(),
            owner_id=owner_id or uuid.uuid4(),
            name=name,
            tier=tier,
            type=listing_type,
            member_count=member_count,
            last_bumped_at=last_bumped_at,
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        async with session_factory() as session:
            session.add(listing)
            await session.commit()
        return listing.id

    return _make


@pytest_asyncio.fixture
async def client(session_factory, monkeypatch):
    """HTTP client against the app, wired to the test database and a fake Redis."""
    from promoboard import database
    from promoboard.main import app

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[database.get_db] = _get_db
    monkeypatch.setattr(database, "async_session_factory", session_factory)

    redis = AsyncMock()
    redis.incr = AsyncMock(return_value=1)
    redis.ping = AsyncMock(return_value=True)
    app.state.redis = redis
    app.state.scheduler_worker_task = None

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()

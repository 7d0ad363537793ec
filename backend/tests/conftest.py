"""
Pytest configuration and fixtures.

Tests run against an in-memory SQLite database (aiosqlite) shared through a
StaticPool, so every session in a test sees the same data. The Notion API
and asset downloads are served by httpx.MockTransport handlers, and stored
assets land in FakeAssetStorage.

Sessions opened from ``session_factory`` share one connection: finish one
(commit or leave its ``async with`` block) before opening the next.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- FastAPI Testing: https://fastapi.tiangolo.com/advanced/async-tests/
- SQLAlchemy aiosqlite savepoints: https://docs.sqlalchemy.org/en/20/dialects/sqlite.html#serializable-isolation-savepoints-transactional-ddl
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "staging")
os.environ.setdefault("LOG_FORMAT", "text")

from typing import AsyncGenerator  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import vista.models  # noqa: E402,F401
from vista.db.base import Base  # noqa: E402
from vista.models.profile import Profile  # noqa: E402
from vista.services.content_pipeline import ContentPipeline  # noqa: E402
from vista.services.processors.image_backup import ImageAssetBackupManager  # noqa: E402

from tests.notion_fakes import (  # noqa: E402
    DATABASE_ID,
    FakeAssetStorage,
    FakeNotion,
    asset_handler,
    make_notion_factory,
)


# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def test_engine():
    """
    Fresh in-memory database per test.

    pysqlite's own transaction handling breaks SAVEPOINT; the two listeners
    hand BEGIN over to SQLAlchemy so ``begin_nested()`` works.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ================================
# Notion & Storage Fakes
# ================================

@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def notion_factory(fake_notion):
    return make_notion_factory(fake_notion)


@pytest.fixture
def fake_storage() -> FakeAssetStorage:
    return FakeAssetStorage()


@pytest_asyncio.fixture
async def asset_http() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(asset_handler)) as client:
        yield client


@pytest.fixture
def backup_manager(fake_storage, asset_http) -> ImageAssetBackupManager:
    return ImageAssetBackupManager(fake_storage, asset_http)


@pytest.fixture
def pipeline(backup_manager) -> ContentPipeline:
    return ContentPipeline(backup_manager)


# ================================
# Profile Fixtures
# ================================

@pytest_asyncio.fixture
async def profile(session_factory) -> Profile:
    """A profile configured for the fake Notion database."""
    async with session_factory() as session:
        profile = Profile(
            url_param="spring-retreat",
            display_name="Spring Retreat",
            notion_database_id=DATABASE_ID,
            notion_api_key="secret_test",
        )
        session.add(profile)
        await session.commit()
    return profile


@pytest_asyncio.fixture
async def other_profile(session_factory) -> Profile:
    async with session_factory() as session:
        profile = Profile(
            url_param="other",
            display_name="Other",
            notion_database_id="99999999-9999-9999-9999-999999999999",
            notion_api_key="secret_other",
        )
        session.add(profile)
        await session.commit()
    return profile


# ================================
# FastAPI Client Fixtures
# ================================

@pytest_asyncio.fixture
async def client(session_factory, backup_manager, notion_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the FastAPI app.

    Each request gets its own session from the test engine; asset storage
    and the Notion API are the fakes above.
    """
    from vista.api.deps import get_backup_manager, get_notion_factory
    from vista.db.deps import get_db
    from vista.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_backup_manager] = lambda: backup_manager
    app.dependency_overrides[get_notion_factory] = lambda: notion_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

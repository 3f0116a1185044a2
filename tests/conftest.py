"""Pytest configuration and fixtures for kanbanflow tests."""
import os

# Set test environment before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["AUTO_MIGRATE"] = "false"
os.environ["SLACK_WEBHOOK_URL"] = ""
os.environ["SMTP_HOST"] = ""

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from kanbanflow import dependencies
from kanbanflow.database import get_async_session
from kanbanflow.main import app
from kanbanflow.models import Base
from kanbanflow.services import activity

from factories import headers

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine):
    maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    original = activity.session_factory
    activity.session_factory = maker
    yield maker
    activity.session_factory = original


@pytest_asyncio.fixture(scope="function")
async def test_session(session_maker):
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_maker):
    """Create test client with overridden database."""

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_get_session

    # No Redis in tests
    dependencies.redis_client = None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=headers(),
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def board(client: AsyncClient) -> dict:
    """A default-template board owned by OWNER."""
    response = await client.post("/v1/boards/", json={"name": "Release"})
    assert response.status_code == 201
    return response.json()

"""Database configuration with async SQLAlchemy and connection pooling."""
import os
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from sqlalchemy import text

from kanbanflow.config import settings
from kanbanflow.logging_config import get_logger

logger = get_logger(__name__)

DATABASE_URL = settings.database_url
IS_SQLITE = settings.is_sqlite

if IS_SQLITE:
    # SQLite: use StaticPool (single connection)
    engine: AsyncEngine = create_async_engine(
        DATABASE_URL,
        echo=settings.database_echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    # PostgreSQL: use QueuePool with proper connection pooling
    engine: AsyncEngine = create_async_engine(
        DATABASE_URL,
        echo=settings.database_echo,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_pre_ping=True,
    )

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db_engine() -> None:
    """
    Initialize the database engine.

    For SQLite: creates the parent directory and sets WAL / foreign key pragmas.
    For PostgreSQL: verifies connection.
    """
    if IS_SQLITE:
        database_path = DATABASE_URL.replace("sqlite+aiosqlite:///", "")
        db_dir = os.path.dirname(database_path)
        if db_dir and database_path != ":memory:":
            os.makedirs(db_dir, exist_ok=True)

        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA busy_timeout=5000"))
            await conn.execute(text("PRAGMA foreign_keys=ON"))
    else:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connected to PostgreSQL")


async def close_db_engine() -> None:
    """Close the database engine and all connections."""
    await engine.dispose()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async session.

    Services commit their own writes (the concurrency guard needs to own the
    commit); this only commits leftovers and rolls back on error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

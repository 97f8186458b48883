"""
Database engine and session management.
Async SQLAlchemy with one session per request.
"""
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
import structlog

from ..models.base import Base
from .config import Settings

logger = structlog.get_logger()


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for ``settings.DATABASE_URL``.

    SQLite gets a single shared connection when in-memory; server databases
    get a sized connection pool.
    """
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=settings.DATABASE_ECHO, **kwargs)

    return create_async_engine(
        url,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables. Used for development and tests."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides an async session.
    Services commit explicitly; anything left uncommitted is rolled back.
    """
    session_factory = request.app.state.container.session_factory
    async with session_factory() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error=str(e))
            raise


async def check_connection(engine: AsyncEngine) -> bool:
    """Check if the database connection is healthy."""
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False

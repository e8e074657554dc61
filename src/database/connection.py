"""
Database connection management using SQLAlchemy with async support.

The metrics engine only reads; the ingestion job owns writes and the schema
is managed through Alembic migrations.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from shared.utils.config import settings
from shared.utils.logger import log_error, setup_logger

logger = setup_logger(__name__)

# Base class for all models
Base = declarative_base()

# Global engine and session maker
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_database_url() -> str:
    """
    Get the database URL for async connections.

    Returns:
        Database URL with asyncpg driver
    """
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def get_engine() -> AsyncEngine:
    """
    Get or create the async database engine.

    Returns:
        AsyncEngine instance
    """
    global _engine

    if _engine is None:
        db_url = get_database_url()

        logger.info(f"Creating database engine: {db_url.split('@')[-1]}")  # Log without credentials

        if db_url.startswith("sqlite"):
            _engine = create_async_engine(db_url, echo=settings.DATABASE_ECHO)
        else:
            _engine = create_async_engine(
                db_url,
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
                pool_recycle=settings.DATABASE_POOL_RECYCLE,
                echo=settings.DATABASE_ECHO,
            )

    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the session maker.

    Returns:
        Session maker instance
    """
    global _session_maker

    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _session_maker


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a read-only async database session with automatic cleanup.

    Yields:
        AsyncSession instance

    Example:
        async with get_session() as session:
            result = await session.execute(query)
    """
    session = get_session_maker()()

    try:
        yield session
    except Exception as e:
        await session.rollback()
        log_error(logger, e, "Database session error")
        raise
    finally:
        await session.close()


async def close_connections():
    """
    Close all database connections.
    Call this on application shutdown.
    """
    global _engine, _session_maker

    if _engine:
        logger.info("Closing database connections...")
        await _engine.dispose()
        _engine = None
        _session_maker = None

    logger.info("Database connections closed")


async def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check: SUCCESS")
        return True
    except Exception as e:
        log_error(logger, e, "Database connection check failed")
        return False

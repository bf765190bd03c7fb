"""
Database connection management using SQLAlchemy with async support.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from shared.utils.config import settings
from shared.utils.logger import setup_logger

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
        Database URL with asyncpg driver for PostgreSQL
    """
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def build_engine(db_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for a URL.

    SQLite URLs get no pool sizing and a generous busy timeout so concurrent
    workers wait on the database lock instead of failing.
    """
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=echo, connect_args={"timeout": 30})

    return create_async_engine(
        db_url,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
        pool_recycle=settings.DATABASE_POOL_RECYCLE,
        echo=echo,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


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
        _engine = build_engine(db_url, echo=settings.DATABASE_ECHO)

    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the session maker.

    Returns:
        Session maker instance
    """
    global _session_maker

    if _session_maker is None:
        _session_maker = build_session_maker(get_engine())

    return _session_maker


@asynccontextmanager
async def get_session(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get async database session; commits on success, rolls back on error.

    Args:
        session_maker: Session factory, defaults to the global one

    Example:
        async with get_session() as session:
            result = await session.execute(query)
    """
    session = (session_maker or get_session_maker())()

    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    except Exception:
        # Domain errors (not found, validation) are logged by the caller
        await session.rollback()
        raise
    finally:
        await session.close()


async def create_tables(engine: Optional[AsyncEngine] = None):
    """
    Create all database tables.
    Used for testing or initial setup; production uses Alembic migrations.
    """
    import src.database.models  # noqa: F401  (register tables on Base.metadata)

    engine = engine or get_engine()
    logger.info("Creating database tables...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")


async def close_connections():
    """
    Close all database connections.
    Call this on worker shutdown.
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
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check: SUCCESS")
        return True
    except Exception as e:
        logger.error(f"Database connection check: FAILED - {e}")
        return False

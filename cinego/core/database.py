"""
Database configuration and session management
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool
from sqlalchemy import text
import logging

from cinego.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str = None) -> AsyncEngine:
    url = url or settings.DATABASE_URL
    if settings.is_testing or url.startswith("sqlite"):
        # NullPool doesn't accept pool parameters
        return create_async_engine(url, echo=settings.DB_ECHO, poolclass=NullPool)
    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        poolclass=AsyncAdaptedQueuePool,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = build_engine()

# Create async session factory
async_session = build_session_factory(engine)

# Create declarative base
Base = declarative_base()


async def init_db(bind: AsyncEngine = None):
    """
    Initialize database connections and create missing tables
    """
    # Register every model on the metadata before create_all
    import cinego.models  # noqa: F401

    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db():
    """
    Close database connections
    """
    await engine.dispose()
    logger.info("Database connections closed")


async def ping_db(session: AsyncSession) -> bool:
    result = await session.execute(text("SELECT 1"))
    return result.scalar() == 1


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session with explicit transaction management
    Each endpoint must use explicit transaction boundaries
    """
    async with async_session() as session:
        try:
            yield session
            # No auto-commit - services commit at their own boundaries
        except Exception:
            await session.rollback()
            raise

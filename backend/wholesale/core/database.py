"""
Database connection management with SQLAlchemy async.
Provides session dependency injection and connection pooling.
"""
import re
from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends
from sqlalchemy import JSON, DateTime, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from wholesale.core.config import settings
from wholesale.core.logging import get_logger

logger = get_logger(__name__)

SessionContextFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Timestamp default for model columns; set client-side so flushed rows need no refresh."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that tags naive values loaded from the driver as UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine with proper configuration."""
    database_url = database_url or str(settings.database_url)
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    sanitized = re.sub(r':([^:@/]+)@', ':***@', database_url)
    logger.debug("Creating database engine", url=sanitized)

    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=settings.database_echo)

    return create_async_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


def session_context_factory(
    factory: async_sessionmaker[AsyncSession],
) -> SessionContextFactory:
    """Wrap a sessionmaker into a commit-on-success / rollback-on-error context factory."""

    @asynccontextmanager
    async def session_context() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return session_context


# Global engine and session factory
engine = create_engine()
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Context manager for database sessions outside of request context
get_db_context = session_context_factory(async_session_factory)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session with automatic cleanup."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def init_db() -> None:
    """Create missing tables. Production schemas are managed by Alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")

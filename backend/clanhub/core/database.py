"""
Database engine and session management.

Async SQLAlchemy engine, session factory and declarative base
shared by all ORM models.
"""

from datetime import datetime, timezone
from functools import lru_cache
from uuid import uuid4

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from clanhub.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all models."""


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a string UUID primary key."""
    return str(uuid4())


@lru_cache
def get_engine() -> AsyncEngine:
    """Get cached async engine."""
    kwargs: dict = {"echo": settings.database_echo, "pool_pre_ping": True}
    if not settings.database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
    return create_async_engine(settings.database_url, **kwargs)


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get cached session factory bound to the engine."""
    return async_sessionmaker(
        bind=get_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


async def init_db() -> None:
    """Create all tables."""
    # Models must be imported so their tables are registered on Base.metadata
    from clanhub.models import forum, user  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def close_db() -> None:
    """Dispose of the engine and its connection pool."""
    await get_engine().dispose()
    get_session_factory.cache_clear()
    get_engine.cache_clear()
    logger.info("Database connections closed")

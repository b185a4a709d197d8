"""
Database engine and sessions.

PostgreSQL (asyncpg) in deployment; SQLite (aiosqlite) URLs are accepted for
local runs, which do not take the pool sizing options.
"""

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from parcelflow.app.core.config import settings

# Constraint names are identical on PostgreSQL and SQLite
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, applying pool settings where the driver has a pool."""
    options = {"echo": settings.db_echo}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(pool_size=settings.db_pool_size, max_overflow=settings.db_max_overflow)
    return create_async_engine(database_url, **options)


engine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


async def get_db():
    """
    FastAPI dependency for the request session.

    Anything left uncommitted when the request fails is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """
    FastAPI dependency for the session factory.

    Best-effort writers (tracking ledger, notifications) open their own
    sessions so a failure there never touches the request transaction.
    """
    return AsyncSessionLocal

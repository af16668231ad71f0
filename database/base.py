"""Database base configuration and session management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from api.config import settings


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# BIGINT primary keys; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntId = BigInteger().with_variant(Integer, "sqlite")


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.debug}
    if url.startswith("sqlite"):
        return kwargs
    if settings.debug:
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
    return kwargs


# Create async engine
engine = create_async_engine(
    settings.database_url,
    **_engine_kwargs(settings.database_url),
)

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def session_scope(
    session_maker: Optional[async_sessionmaker] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commit on success, roll back on error.

    Every public engine operation runs inside a single scope so that its
    counter and status writes become visible together or not at all.
    """
    maker = session_maker or async_session_maker
    async with maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Initialize database - create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()

"""Async engine, sessions and locking helpers for the booking database."""

from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    SQLite (tests and local runs) shares one connection across the app so an
    in-memory database survives between sessions.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=settings.debug,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


engine = build_engine(settings.database_url)

# Sessions keep loaded bookings usable after commit; flushes are explicit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session that is rolled back on error."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def advisory_lock(session: AsyncSession, key: str) -> None:
    """
    Take a transaction-scoped PostgreSQL advisory lock on ``key``.

    Booking and cancellation lock ``property:{id}`` so two API workers cannot
    interleave availability checks for the same property. The lock is released
    at commit or rollback. No-op on SQLite, where the in-process
    ``property_locks`` are the only serialization.
    """
    if session.bind is not None and session.bind.dialect.name == "postgresql":
        await session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})


async def init_db() -> None:
    """Create every booking table that does not exist yet."""
    from .. import models  # noqa: F401 - register tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()

"""
ODR Lab – Async SQLAlchemy engine, session handle, and declarative base.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Declarative base ──
class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, url: str, echo: bool = False) -> None:
        engine_kwargs = {
            "echo": echo,
            "future": True,
        }

        # If using PostgreSQL behind PgBouncer (transaction mode), disable
        # prepared statement caching because it is not supported there.
        if "postgresql" in url:
            engine_kwargs["connect_args"] = {"statement_cache_size": 0}

        self.url = url
        self.engine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def connect(self) -> None:
        """Create any missing tables."""
        import odrlab.models  # noqa: F401  registers every model on Base.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def disconnect(self) -> None:
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.session_factory()


# ── Dependencies for FastAPI routes ──
def get_database(request: Request) -> Database:
    """Return the data-access handle attached to the running app."""
    return request.app.state.database


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async database session; commit on success, roll back on error."""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

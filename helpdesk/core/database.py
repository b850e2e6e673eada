"""Async engine and session factory construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import packages.db.models  # noqa: F401  registers every table on SQLModel.metadata

logger = logging.getLogger(__name__)


def ensure_datetime(value: datetime | None) -> datetime:
    """Attach UTC to naive timestamps read back from drivers that drop the offset."""

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def to_async_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses an asyncio driver."""

    if dsn.startswith("postgresql+asyncpg://") or dsn.startswith("sqlite+aiosqlite://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://") :]
    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://") :]
    return dsn


@dataclass(slots=True)
class Database:
    """Engine plus the session factory every repository is built from."""

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]

    @classmethod
    def from_dsn(cls, dsn: str, *, echo: bool = False) -> "Database":
        engine = create_async_engine(to_async_dsn(dsn), echo=echo, future=True)
        return cls(engine=engine, session_factory=async_sessionmaker(engine, expire_on_commit=False))

    async def ensure_schema(self) -> None:
        async with self.engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)
        logger.info("Database schema ensured on %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        await self.engine.dispose()

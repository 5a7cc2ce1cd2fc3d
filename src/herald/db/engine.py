"""Async SQLAlchemy engine and session management.

SQLite is the default backend. Any async SQLAlchemy URL works; claims rely
only on conditional UPDATE row counts.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from herald.db.models import Base

if TYPE_CHECKING:
    from herald.config.models import DatabaseConfig

logger = logging.getLogger(__name__)

# Seconds a writer waits on SQLite's lock before "database is locked"
SQLITE_BUSY_TIMEOUT = 5


class Database:
    """Owns the engine and hands out transactional sessions.

    Construct with either a URL or a SQLite file path, then ``connect()``.
    """

    def __init__(
        self, database_url: str | None = None, database_path: Path | None = None
    ):
        if database_url:
            self._url = database_url
        elif database_path:
            database_path.parent.mkdir(parents=True, exist_ok=True)
            self._url = f"sqlite+aiosqlite:///{database_path}"
        else:
            raise ValueError("Either database_url or database_path must be provided")

        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_config(cls, config: "DatabaseConfig") -> "Database":
        return cls(database_url=config.url, database_path=config.path)

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_sqlite(self) -> bool:
        return self._url.startswith("sqlite")

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._engine

    async def connect(self) -> None:
        connect_args = {"timeout": SQLITE_BUSY_TIMEOUT} if self.is_sqlite else {}
        self._engine = create_async_engine(
            self._url,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.debug("database_connected", extra={"db.url": self._url})

    async def create_tables(self) -> None:
        """Create any missing tables; existing ones are left alone."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """True if a trivial query succeeds."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("database_ping_failed", extra={"error.message": str(e)})
            return False
        return True

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """A session committed on success and rolled back on error.

        Usage:
            async with db.session() as session:
                result = await session.execute(...)
        """
        if self._sessions is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

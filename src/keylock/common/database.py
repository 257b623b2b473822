"""Async engine holder for the SQL record store."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from keylock.common.config import KeylockSettings, get_settings
from keylock.common.models import Base

# Registers LicenseRow and DistributionRow on Base.metadata.
import keylock.storage.models  # noqa: F401

SQLITE_BUSY_TIMEOUT = 30


class DatabaseManager:
    """One async engine per store; each ``transaction()`` commits or rolls back as a unit."""

    def __init__(self, settings: KeylockSettings | None = None, url: str | None = None):
        self.url = make_url(url or (settings or get_settings()).db_url)
        self.engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    async def init(self) -> None:
        if self.engine is not None:
            return
        connect_args = {}
        if self.is_sqlite:
            connect_args["timeout"] = SQLITE_BUSY_TIMEOUT
            database = self.url.database
            if database and database != ":memory:":
                Path(database).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_async_engine(self.url, connect_args=connect_args)
        self._sessions = async_sessionmaker(self.engine, expire_on_commit=False)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        if self._sessions is None:
            raise RuntimeError("DatabaseManager not initialized: call init() first")
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ensure_schema(self) -> None:
        """Create the license and distribution tables when missing."""
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized: call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self._sessions = None

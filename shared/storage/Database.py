"""Database lifecycle: one engine and session factory per process."""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shared.helper.HelperConfig import HelperConfig
from shared.storage.tables import Base


class Database:
    """Owns the async engine. Created at startup via ``boot()``, disposed via ``close()``."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        default_path = os.path.join(os.getenv("ROOT_DIR") or os.getcwd(), "knowledge.db")
        self._url = helper_config.get_string_val("DATABASE_URL", default=f"sqlite+aiosqlite:///{default_path}")
        self._echo = helper_config.get_bool_val("DATABASE_ECHO", default=False)
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    def _is_memory_sqlite(self) -> bool:
        return self._url.startswith("sqlite") and (self._url.endswith("://") or ":memory:" in self._url)

    async def boot(self) -> None:
        """Create the engine and make sure all tables exist."""
        kwargs: dict = {"echo": self._echo}
        if self._is_memory_sqlite():
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        self._engine = create_async_engine(self._url, **kwargs)
        self._sessionmaker = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.logging.info("Database ready (%s).", self._url.split("://", 1)[0])

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._sessionmaker is None:
            raise RuntimeError("Database not initialised. Call boot() first.")
        async with self._sessionmaker() as session:
            yield session

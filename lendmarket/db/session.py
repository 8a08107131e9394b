from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from lendmarket.db.url import normalize_database_url

logger = logging.getLogger(__name__)


class Database:
    """Process-wide handle on the connection pool.

    Built once by the application factory, initialised on startup and
    disposed on shutdown. Request handlers reach it through ``get_db``.
    """

    def __init__(self, url: str, *, pool_timeout: float = 10.0, echo: bool = False) -> None:
        self.url = normalize_database_url(url)
        self._pool_timeout = pool_timeout
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database has not been initialised")
        return self._engine

    def init(self) -> None:
        if self._engine is not None:
            return
        self._engine = create_async_engine(
            self.url,
            echo=self._echo,
            pool_pre_ping=True,
            pool_timeout=self._pool_timeout,
        )
        self._sessionmaker = async_sessionmaker(
            self._engine, expire_on_commit=False, autoflush=False
        )
        logger.info("Database engine initialised")

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database engine disposed")

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise RuntimeError("Database has not been initialised")
        return self._sessionmaker()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session

"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages async database connections and sessions.

- Owns the async engine and session factory
- Provides explicit transaction boundaries
- Health checks for connections

============================================================
DESIGN PRINCIPLES
============================================================
- Async by default
- Repositories flush; the transaction scope commits
- Rollback on ANY exception, then re-raise

============================================================
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import DatabaseConfig
from storage.models.base import Base
from storage.repositories.exceptions import DatabaseConnectionError


logger = logging.getLogger(__name__)


class Database:
    """
    Async database handle.

    Usage:
        db = Database(DatabaseConfig(url="sqlite+aiosqlite:///./x.db"))
        await db.connect()
        async with db.transaction() as session:
            session.add(row)
            # Commits automatically at end
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    # ----- LIFECYCLE -----

    async def connect(self) -> None:
        """Create the engine and session factory. Idempotent."""
        if self._engine is not None:
            return

        logger.info(f"Creating database engine for: {self._config.url.split('@')[-1]}")
        self._engine = create_async_engine(
            self._config.url,
            echo=self._config.echo,
            pool_pre_ping=self._config.pool_pre_ping,
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )

    async def disconnect(self) -> None:
        """Dispose of the engine and its pool."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    async def create_all(self) -> None:
        """Create all tables defined in ORM models."""
        engine = self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Created {len(Base.metadata.tables)} tables")

    def get_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseConnectionError(
                repository_name="Database",
                operation="get_engine",
                original_error="Database.connect() has not been called",
            )
        return self._engine

    # ----- SESSIONS -----

    def session(self) -> AsyncSession:
        """
        Get a new session.

        IMPORTANT: Caller is responsible for committing/closing.
        Prefer transaction() instead.
        """
        if self._session_factory is None:
            raise DatabaseConnectionError(
                repository_name="Database",
                operation="session",
                original_error="Database.connect() has not been called",
            )
        return self._session_factory()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Context manager for explicit transaction boundaries.

        Commits only if no exception occurs.
        Rolls back on ANY exception and re-raises it.
        """
        session = self.session()
        try:
            yield session
            await session.commit()
        except BaseException as e:
            logger.debug(f"Transaction rolled back: {type(e).__name__}")
            await session.rollback()
            raise
        finally:
            await session.close()

    # ----- HEALTH -----

    async def health_check(self) -> bool:
        """Check the connection is alive."""
        try:
            async with self.get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, DatabaseConnectionError) as e:
            logger.error(f"Database health check failed: {e}")
            return False

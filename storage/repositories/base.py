"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Common functionality for all async repositories:
- Session injection
- Error handling wrappers
- Common query helpers

============================================================
USAGE
============================================================
Repositories receive the AsyncSession of the caller's
transaction scope. They flush, never commit.

============================================================
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.base import Base
from storage.repositories.exceptions import (
    DatabaseConnectionError,
    DuplicateRecordError,
    QueryError,
)


T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    ============================================================
    USAGE
    ============================================================
    class MyRepository(BaseRepository[MyModel]):
        def __init__(self, session: AsyncSession):
            super().__init__(session, MyModel, "MyRepository")

    ============================================================
    """

    def __init__(
        self,
        session: AsyncSession,
        model_class: Type[T],
        repository_name: str
    ) -> None:
        self._session = session
        self._model_class = model_class
        self._repository_name = repository_name
        self._logger = logging.getLogger(f"repository.{repository_name}")

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(
        self,
        error: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> None:
        """
        Wrap a database error in a repository exception.

        Raises:
            RepositoryException: Always
        """
        context = context or {}
        self._logger.error(
            f"Database error in {operation}: {error}",
            extra={"context": context},
            exc_info=True
        )

        if isinstance(error, SQLAlchemyIntegrityError):
            raise DuplicateRecordError(
                repository_name=self._repository_name,
                constraint_field=context.get("unique_key", "unknown"),
                value=context.get("value", "unknown"),
            ) from error

        if isinstance(error, OperationalError):
            raise DatabaseConnectionError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error)
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            original_error=str(error)
        ) from error

    async def _add(self, entity: T, context: Optional[dict] = None) -> T:
        """Add an entity and flush so generated ids are available."""
        try:
            self._session.add(entity)
            await self._session.flush()
            return entity
        except SQLAlchemyError as e:
            self._handle_db_error(e, "add", context or {"entity": repr(entity)})
            raise

    async def _flush(self, operation: str = "update") -> None:
        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise

    async def _get_by_id(self, record_id: int) -> Optional[T]:
        try:
            return await self._session.get(self._model_class, record_id)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_by_id", {"id": record_id})
            raise

    async def _execute_query(self, stmt: Any, operation: str = "query") -> List[T]:
        try:
            result = await self._session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise

    async def _execute_scalar(self, stmt: Any, operation: str = "query_scalar") -> Optional[Any]:
        try:
            result = await self._session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise

    async def _execute(self, stmt: Any, operation: str) -> Any:
        """Execute a DML statement and return the raw result."""
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise

    async def _count(self, stmt: Any) -> int:
        """Count rows matched by a select statement."""
        try:
            count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
            result = await self._session.execute(count_stmt)
            return result.scalar() or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count")
            raise

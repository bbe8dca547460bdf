"""
Connector Repositories.

============================================================
REPOSITORIES
============================================================
- ConnectorRepository: connector configuration
- IntegrationLogRepository: append-only call logs
- JobMetadataRepository: batch job rows and search

============================================================
"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.connectors import Connector, IntegrationJobMetadata, IntegrationLog
from storage.repositories.base import BaseRepository


class ConnectorRepository(BaseRepository[Connector]):
    """Connector configuration store."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Connector, "ConnectorRepository")

    async def add(self, connector: Connector) -> Connector:
        return await self._add(connector, {"unique_key": "name", "value": connector.name})

    async def get(self, connector_id: int) -> Optional[Connector]:
        return await self._get_by_id(connector_id)

    async def list_all(self) -> List[Connector]:
        stmt = select(Connector).order_by(Connector.name)
        return await self._execute_query(stmt, "list_all")

    async def save(self) -> None:
        """Flush pending attribute changes on loaded connectors."""
        await self._flush("save")


class IntegrationLogRepository(BaseRepository[IntegrationLog]):
    """Append-only integration log store."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, IntegrationLog, "IntegrationLogRepository")

    async def add(self, log: IntegrationLog) -> IntegrationLog:
        return await self._add(log)

    async def get(self, log_id: int) -> Optional[IntegrationLog]:
        return await self._get_by_id(log_id)

    async def list_by_connector(self, connector_id: int, limit: int = 100) -> List[IntegrationLog]:
        stmt = (
            select(IntegrationLog)
            .where(IntegrationLog.connector_id == connector_id)
            .order_by(desc(IntegrationLog.started_at), desc(IntegrationLog.id))
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_by_connector")

    async def list_by_correlation_id(self, correlation_id: str) -> List[IntegrationLog]:
        stmt = (
            select(IntegrationLog)
            .where(IntegrationLog.correlation_id == correlation_id)
            .order_by(IntegrationLog.started_at, IntegrationLog.id)
        )
        return await self._execute_query(stmt, "list_by_correlation_id")

    async def list_in_range(
        self,
        start_date: datetime,
        end_date: datetime,
        connector_id: Optional[int] = None,
    ) -> List[IntegrationLog]:
        stmt = select(IntegrationLog).where(
            IntegrationLog.started_at >= start_date,
            IntegrationLog.started_at <= end_date,
        )
        if connector_id is not None:
            stmt = stmt.where(IntegrationLog.connector_id == connector_id)
        return await self._execute_query(stmt, "list_in_range")


class JobMetadataRepository(BaseRepository[IntegrationJobMetadata]):
    """Batch job metadata store."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, IntegrationJobMetadata, "JobMetadataRepository")

    async def add(self, job: IntegrationJobMetadata) -> IntegrationJobMetadata:
        return await self._add(job, {"unique_key": "job_id", "value": job.job_id})

    async def get_by_job_id(self, job_id: str) -> Optional[IntegrationJobMetadata]:
        stmt = select(IntegrationJobMetadata).where(IntegrationJobMetadata.job_id == job_id)
        return await self._execute_scalar(stmt, "get_by_job_id")

    async def save(self) -> None:
        await self._flush("save")

    async def search(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        status: Optional[str] = None,
        connector_id: Optional[int] = None,
        job_type: Optional[str] = None,
        initiated_by: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[IntegrationJobMetadata], int]:
        """
        Filtered, paginated job search, newest first.

        Returns:
            (jobs on the requested page, total matching count)
        """
        stmt = select(IntegrationJobMetadata)
        if start_date is not None:
            stmt = stmt.where(IntegrationJobMetadata.started_at >= start_date)
        if end_date is not None:
            stmt = stmt.where(IntegrationJobMetadata.started_at <= end_date)
        if status:
            stmt = stmt.where(IntegrationJobMetadata.status == status)
        if connector_id is not None:
            stmt = stmt.where(IntegrationJobMetadata.connector_id == connector_id)
        if job_type:
            stmt = stmt.where(IntegrationJobMetadata.job_type == job_type)
        if initiated_by:
            stmt = stmt.where(IntegrationJobMetadata.initiated_by == initiated_by)

        total = await self._count(stmt)

        page = max(page, 1)
        page_stmt = (
            stmt.order_by(desc(IntegrationJobMetadata.started_at), desc(IntegrationJobMetadata.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        jobs = await self._execute_query(page_stmt, "search")
        return jobs, total

    async def list_in_range(
        self,
        start_date: datetime,
        end_date: datetime,
        connector_id: Optional[int] = None,
    ) -> List[IntegrationJobMetadata]:
        stmt = select(IntegrationJobMetadata).where(
            IntegrationJobMetadata.started_at >= start_date,
            IntegrationJobMetadata.started_at <= end_date,
        )
        if connector_id is not None:
            stmt = stmt.where(IntegrationJobMetadata.connector_id == connector_id)
        return await self._execute_query(stmt, "list_in_range")

"""
Staging Repositories (HR, Finance).

============================================================
CONCURRENCY
============================================================
get_by_external_id(for_update=True) issues SELECT ... FOR UPDATE
so that check-existing -> decide -> write is atomic per
(connector_id, external_id) on backends with row locks. The sync
services additionally hold an in-process lock per key.

============================================================
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.staging import (
    FinanceEntity,
    FinanceSyncRecord,
    HREntity,
    HRSyncRecord,
)
from storage.repositories.base import BaseRepository


E = TypeVar("E", HREntity, FinanceEntity)
R = TypeVar("R", HRSyncRecord, FinanceSyncRecord)


# ============================================================
# STAGING ENTITIES
# ============================================================

class _StagingEntityRepository(BaseRepository[E], Generic[E]):
    """Shared queries for staging entity tables."""

    async def add(self, entity: E) -> E:
        return await self._add(
            entity,
            {"unique_key": "connector_id,external_id", "value": f"{entity.connector_id},{entity.external_id}"},
        )

    async def get(self, entity_id: int) -> Optional[E]:
        return await self._get_by_id(entity_id)

    async def get_by_external_id(
        self,
        connector_id: int,
        external_id: str,
        for_update: bool = False,
    ) -> Optional[E]:
        model = self._model_class
        stmt = select(model).where(
            model.connector_id == connector_id,
            model.external_id == external_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return await self._execute_scalar(stmt, "get_by_external_id")

    async def save(self) -> None:
        await self._flush("save")


class HREntityRepository(_StagingEntityRepository[HREntity]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, HREntity, "HREntityRepository")


class FinanceEntityRepository(_StagingEntityRepository[FinanceEntity]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, FinanceEntity, "FinanceEntityRepository")


# ============================================================
# SYNC RECORDS (append-only)
# ============================================================

class _SyncRecordRepository(BaseRepository[R], Generic[R]):
    """Append-only sync history. No update methods by construction."""

    async def add(self, record: R) -> R:
        return await self._add(record)

    async def list_history(self, connector_id: int, limit: int = 100) -> List[R]:
        model = self._model_class
        stmt = (
            select(model)
            .where(model.connector_id == connector_id)
            .order_by(desc(model.synced_at), desc(model.id))
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_history")

    async def list_by_status(self, connector_id: int, status: str, limit: int = 100) -> List[R]:
        model = self._model_class
        stmt = (
            select(model)
            .where(model.connector_id == connector_id, model.status == status)
            .order_by(desc(model.synced_at), desc(model.id))
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_by_status")

    async def list_by_job(self, import_job_id: str) -> List[R]:
        model = self._model_class
        stmt = select(model).where(model.import_job_id == import_job_id).order_by(model.id)
        return await self._execute_query(stmt, "list_by_job")


class HRSyncRecordRepository(_SyncRecordRepository[HRSyncRecord]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, HRSyncRecord, "HRSyncRecordRepository")


class FinanceSyncRecordRepository(_SyncRecordRepository[FinanceSyncRecord]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, FinanceSyncRecord, "FinanceSyncRecordRepository")

    async def list_conflicts(self, connector_id: int, limit: int = 100) -> List[FinanceSyncRecord]:
        stmt = (
            select(FinanceSyncRecord)
            .where(
                FinanceSyncRecord.connector_id == connector_id,
                FinanceSyncRecord.conflict_detected.is_(True),
            )
            .order_by(desc(FinanceSyncRecord.synced_at), desc(FinanceSyncRecord.id))
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_conflicts")

    async def list_overrides(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        connector_id: Optional[int] = None,
        approved_by: Optional[str] = None,
    ) -> List[FinanceSyncRecord]:
        """Records carrying a non-empty override actor, newest first."""
        stmt = select(FinanceSyncRecord).where(
            FinanceSyncRecord.approved_override_by.is_not(None),
            FinanceSyncRecord.approved_override_by != "",
        )
        if start_date is not None:
            stmt = stmt.where(FinanceSyncRecord.synced_at >= start_date)
        if end_date is not None:
            stmt = stmt.where(FinanceSyncRecord.synced_at <= end_date)
        if connector_id is not None:
            stmt = stmt.where(FinanceSyncRecord.connector_id == connector_id)
        if approved_by:
            stmt = stmt.where(FinanceSyncRecord.approved_override_by == approved_by)
        stmt = stmt.order_by(desc(FinanceSyncRecord.synced_at), desc(FinanceSyncRecord.id))
        return await self._execute_query(stmt, "list_overrides")

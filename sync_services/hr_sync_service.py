"""
HR Sync Service.

Reconciliation policy: an approved staging entity is never
overwritten. The incoming record is Rejected for manual review.
"""

import asyncio
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.connectors import ConnectorType
from storage.models.staging import HREntity, HRSyncRecord, SyncRecordStatus
from storage.repositories.staging import HREntityRepository, HRSyncRecordRepository
from sync_services.base import BaseSyncService, SyncRun
from sync_services.mapping_config import HR_TRANSFORMS, MappingResult
from sync_services.records import ExternalRecord
from sync_services.results import SyncOutcome, SyncResult


logger = logging.getLogger(__name__)


APPROVED_DATA_MESSAGE = "Cannot overwrite approved data. Manual review required."


class HRSyncService(BaseSyncService):
    """Pulls employee records from HR systems into the HR staging area."""

    connector_type = ConnectorType.HR
    system_name = "HR"
    job_type = "HRSync"
    connection_success_message = "Successfully connected to HR system and validated authentication"
    allowed_transforms = HR_TRANSFORMS

    entity_repository = HREntityRepository
    record_repository = HRSyncRecordRepository

    @property
    def resource(self) -> str:
        return self._sync_config.hr_resource

    async def execute_sync(
        self,
        connector_id: int,
        initiated_by: str,
        is_scheduled: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SyncResult:
        """
        Run one HR sync batch.

        Raises:
            ConnectorNotFoundError, ConnectorTypeMismatchError,
            ConnectorDisabledError: Before any network call
        """
        return await self._run_sync(connector_id, initiated_by, is_scheduled, None, cancel_event)

    def _new_sync_record(
        self,
        run: SyncRun,
        record: ExternalRecord,
        status: SyncRecordStatus,
        **fields: Any,
    ) -> HRSyncRecord:
        return HRSyncRecord(
            connector_id=run.connector.id,
            correlation_id=run.correlation_id,
            import_job_id=run.import_job_id,
            status=status.value,
            external_id=record.external_id,
            raw_data=record.data,
            initiated_by=run.initiated_by,
            synced_at=self._clock.now(),
            **fields,
        )

    async def _reconcile(
        self,
        session: AsyncSession,
        run: SyncRun,
        record: ExternalRecord,
        mapping: MappingResult,
    ) -> SyncOutcome:
        if not mapping.success:
            return await self._reject(session, run, record, mapping.error_message)

        entities = HREntityRepository(session)
        records = HRSyncRecordRepository(session)
        existing = await entities.get_by_external_id(run.connector.id, record.external_id, for_update=True)
        now = self._clock.now()

        if existing is not None:
            if existing.is_approved:
                return await self._reject(session, run, record, APPROVED_DATA_MESSAGE)

            existing.data = record.data
            existing.mapped_data = mapping.mapped_data
            existing.import_job_id = run.import_job_id
            existing.updated_at = now
            await entities.save()
            await records.add(self._new_sync_record(run, record, SyncRecordStatus.SUCCESS, hr_entity_id=existing.id))
            return SyncOutcome.UPDATED

        entity = HREntity(
            connector_id=run.connector.id,
            external_id=record.external_id,
            entity_type=record.entity_type or "Employee",
            data=record.data,
            mapped_data=mapping.mapped_data,
            is_approved=False,
            import_job_id=run.import_job_id,
            imported_at=now,
        )
        await entities.add(entity)
        await records.add(self._new_sync_record(run, record, SyncRecordStatus.SUCCESS, hr_entity_id=entity.id))
        return SyncOutcome.IMPORTED

"""
Finance Sync Service.

============================================================
RECONCILIATION POLICY
============================================================
Existing entity approved, no override actor:
    ConflictPreserved, entity untouched, not an error
Existing entity approved, override actor supplied:
    updated, AdminOverride recorded with the actor
Otherwise:
    created or updated, NoConflict

============================================================
"""

import asyncio
import logging
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.connectors import ConnectorType
from storage.models.staging import (
    ConflictResolution,
    FinanceEntity,
    FinanceSyncRecord,
    SyncRecordStatus,
)
from storage.repositories.staging import FinanceEntityRepository, FinanceSyncRecordRepository
from sync_services.base import BaseSyncService, SyncRun
from sync_services.mapping_config import FINANCE_TRANSFORMS, MappingResult
from sync_services.records import ExternalRecord
from sync_services.results import SyncOutcome, SyncResult


logger = logging.getLogger(__name__)


CONFLICT_MESSAGE = "Cannot overwrite approved manual data. Admin approval required for override."


class FinanceSyncService(BaseSyncService):
    """Pulls financial records into the Finance staging area."""

    connector_type = ConnectorType.FINANCE
    system_name = "Finance"
    job_type = "FinanceSync"
    connection_success_message = (
        "Successfully connected to Finance system, validated authentication and required permissions"
    )
    allowed_transforms = FINANCE_TRANSFORMS

    entity_repository = FinanceEntityRepository
    record_repository = FinanceSyncRecordRepository

    @property
    def resource(self) -> str:
        return self._sync_config.finance_resource

    async def execute_sync(
        self,
        connector_id: int,
        initiated_by: str,
        is_scheduled: bool = False,
        approved_override_by: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SyncResult:
        """
        Run one Finance sync batch.

        Args:
            approved_override_by: Admin authorizing overwrite of approved data

        Raises:
            ConnectorNotFoundError, ConnectorTypeMismatchError,
            ConnectorDisabledError: Before any network call
        """
        return await self._run_sync(connector_id, initiated_by, is_scheduled, approved_override_by, cancel_event)

    def _completion_message(self, result: SyncResult) -> str:
        return (
            f"Sync completed. Imported: {result.imported_count}, Updated: {result.updated_count}, "
            f"Conflicts Preserved: {result.conflicts_preserved_count}, Rejected: {result.rejected_count}"
        )

    def _new_sync_record(
        self,
        run: SyncRun,
        record: ExternalRecord,
        status: SyncRecordStatus,
        **fields: Any,
    ) -> FinanceSyncRecord:
        return FinanceSyncRecord(
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

        entities = FinanceEntityRepository(session)
        records = FinanceSyncRecordRepository(session)
        existing = await entities.get_by_external_id(run.connector.id, record.external_id, for_update=True)
        now = self._clock.now()
        extract_timestamp = record.extract_timestamp or self._clock.format_iso(now)

        if existing is None:
            entity = FinanceEntity(
                connector_id=run.connector.id,
                external_id=record.external_id,
                entity_type=record.entity_type or "Unknown",
                data=record.data,
                mapped_data=mapping.mapped_data,
                is_approved=False,
                source_system=run.connector.name,
                extract_timestamp=extract_timestamp,
                import_job_id=run.import_job_id,
                imported_at=now,
            )
            await entities.add(entity)
            await records.add(
                self._new_sync_record(
                    run,
                    record,
                    SyncRecordStatus.SUCCESS,
                    finance_entity_id=entity.id,
                    conflict_detected=False,
                    conflict_resolution=ConflictResolution.NO_CONFLICT.value,
                )
            )
            return SyncOutcome.IMPORTED

        if existing.is_approved and not run.approved_override_by:
            await records.add(
                self._new_sync_record(
                    run,
                    record,
                    SyncRecordStatus.CONFLICT_PRESERVED,
                    finance_entity_id=existing.id,
                    conflict_detected=True,
                    conflict_resolution=ConflictResolution.PRESERVED_MANUAL.value,
                    rejection_reason=CONFLICT_MESSAGE,
                    overwrote_approved_data=False,
                )
            )
            logger.warning(
                f"Finance record {record.external_id!r} conflicts with approved entity {existing.id}; "
                f"manual data preserved"
            )
            return SyncOutcome.CONFLICT_PRESERVED

        overriding = existing.is_approved
        existing.data = record.data
        existing.mapped_data = mapping.mapped_data
        existing.source_system = run.connector.name
        existing.extract_timestamp = extract_timestamp
        existing.import_job_id = run.import_job_id
        existing.updated_at = now
        await entities.save()

        await records.add(
            self._new_sync_record(
                run,
                record,
                SyncRecordStatus.SUCCESS,
                finance_entity_id=existing.id,
                conflict_detected=overriding,
                conflict_resolution=(
                    ConflictResolution.ADMIN_OVERRIDE.value if overriding else ConflictResolution.NO_CONFLICT.value
                ),
                approved_override_by=run.approved_override_by if overriding else None,
                overwrote_approved_data=overriding,
            )
        )
        if overriding:
            logger.warning(
                f"Approved Finance entity {existing.id} overwritten under override by {run.approved_override_by}"
            )
        return SyncOutcome.UPDATED

    async def get_conflicts(self, connector_id: int, limit: int = 100) -> List[FinanceSyncRecord]:
        """Records where approved manual data was preserved."""
        async with self._database.transaction() as session:
            return await FinanceSyncRecordRepository(session).list_conflicts(connector_id, limit)

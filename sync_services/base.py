"""
Sync Services - Shared Pipeline.

============================================================
PURPOSE
============================================================
Connect -> map -> reconcile pipeline shared by the HR and
Finance sync services. Subclasses supply only the
reconciliation policy and their staging tables.

============================================================
FLOW
============================================================
1. Preconditions: connector exists, matching type, Enabled
2. Job metadata row (Running)
3. Pull through the Execution Engine
4. Per record, under a per-key lock and one transaction:
   map, reconcile, write staging entity + sync record
5. Finalize result and job (Completed / CompletedWithErrors /
   Failed / Cancelled)

A record's failure never aborts the batch. A cancellation
signal is honoured between records, never mid-write.

============================================================
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import ClockProtocol, SystemClock
from core.config import MappingConfig, SyncConfig
from core.exceptions import (
    ConnectorDisabledError,
    ConnectorNotFoundError,
    ConnectorTypeMismatchError,
)
from canonical_mapping.transformations import TransformContext, TransformationKind
from connectors.http_client import ConnectorHttpClient
from execution_engine.execution_service import IntegrationExecutionService
from monitoring.service import IntegrationMonitoringService
from storage.database import Database
from storage.models.connectors import Connector, ConnectorType, IntegrationLogStatus, JobStatus
from storage.models.staging import SyncRecordStatus
from storage.repositories.connectors import ConnectorRepository
from storage.repositories.exceptions import RecordNotFoundError
from sync_services.locks import KeyedLock
from sync_services.mapping_config import MappingResult, apply_connector_mapping
from sync_services.records import ExternalRecord, parse_records
from sync_services.results import SyncOutcome, SyncResult, TestConnectionResult


logger = logging.getLogger(__name__)


def new_import_job_id(clock: ClockProtocol) -> str:
    """JOB-<yyyymmddHHMMSS>-<8 hex>."""
    return f"JOB-{clock.compact_stamp()}-{uuid.uuid4().hex[:8]}"


@dataclass
class SyncRun:
    """Per-run values every record in the batch shares."""

    connector: Connector
    correlation_id: str
    import_job_id: str
    initiated_by: str
    approved_override_by: Optional[str] = None


class BaseSyncService(ABC):
    """Connect -> map -> reconcile pipeline."""

    connector_type: ConnectorType
    system_name: str
    job_type: str
    connection_success_message: str
    allowed_transforms: FrozenSet[TransformationKind]

    entity_repository: Type
    record_repository: Type

    def __init__(
        self,
        database: Database,
        execution_service: IntegrationExecutionService,
        http_client: Optional[ConnectorHttpClient] = None,
        monitoring: Optional[IntegrationMonitoringService] = None,
        sync_config: Optional[SyncConfig] = None,
        mapping_config: Optional[MappingConfig] = None,
        clock: Optional[ClockProtocol] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self._database = database
        self._execution = execution_service
        self._http = http_client or ConnectorHttpClient()
        self._clock = clock or SystemClock()
        self._monitoring = monitoring or IntegrationMonitoringService(database, self._clock)
        self._sync_config = sync_config or SyncConfig()
        mapping_config = mapping_config or MappingConfig()
        self._transform_ctx = TransformContext(fte_standard_hours=mapping_config.fte_standard_hours)
        self._locks = locks or KeyedLock()

    # ----- SUBCLASS HOOKS -----

    @property
    @abstractmethod
    def resource(self) -> str:
        """Endpoint resource pulled by execute_sync."""

    @abstractmethod
    async def _reconcile(
        self,
        session: AsyncSession,
        run: SyncRun,
        record: ExternalRecord,
        mapping: MappingResult,
    ) -> SyncOutcome:
        """Write the staging entity and sync record for one mapped record."""

    @abstractmethod
    def _new_sync_record(self, run: SyncRun, record: ExternalRecord, status: SyncRecordStatus, **fields: Any):
        """Build (not persist) a sync record for this domain."""

    def _completion_message(self, result: SyncResult) -> str:
        return (
            f"Sync completed. Imported: {result.imported_count}, Updated: {result.updated_count}, "
            f"Rejected: {result.rejected_count}"
        )

    # ============================================================
    # PRECONDITIONS
    # ============================================================

    async def _load_connector(self, connector_id: int, require_enabled: bool = True) -> Connector:
        async with self._database.transaction() as session:
            connector = await ConnectorRepository(session).get(connector_id)

        if connector is None:
            raise ConnectorNotFoundError(connector_id)
        if connector.connector_type != self.connector_type.value:
            raise ConnectorTypeMismatchError(connector_id, self.connector_type.value, connector.connector_type)
        if require_enabled and not connector.is_enabled:
            raise ConnectorDisabledError(connector_id, connector.status)
        return connector

    # ============================================================
    # SYNC
    # ============================================================

    async def _run_sync(
        self,
        connector_id: int,
        initiated_by: str,
        is_scheduled: bool,
        approved_override_by: Optional[str],
        cancel_event: Optional[asyncio.Event],
    ) -> SyncResult:
        connector = await self._load_connector(connector_id)

        run = SyncRun(
            connector=connector,
            correlation_id=str(uuid.uuid4()),
            import_job_id=new_import_job_id(self._clock),
            initiated_by=initiated_by,
            approved_override_by=approved_override_by or None,
        )
        result = SyncResult(
            connector_id=connector_id,
            correlation_id=run.correlation_id,
            import_job_id=run.import_job_id,
            is_scheduled=is_scheduled,
            started_at=self._clock.now(),
        )

        await self._monitoring.create_job(
            job_id=run.import_job_id,
            job_type=self.job_type,
            correlation_id=run.correlation_id,
            initiated_by=initiated_by,
            connector_id=connector_id,
            notes="scheduled" if is_scheduled else None,
        )
        logger.info(
            f"{self.system_name} sync started: connector={connector_id} job={run.import_job_id} "
            f"correlation_id={run.correlation_id}"
        )

        try:
            log = await self._execution.execute_with_retry(
                connector_id,
                "pull",
                run.correlation_id,
                initiated_by,
                lambda: self._http.get(connector, self.resource, run.correlation_id),
            )

            if log.status != IntegrationLogStatus.SUCCESS.value:
                result.message = f"Sync failed: {log.error_message}"
                return await self._finish(result, JobStatus.FAILED, error_summary=log.error_message)

            records = parse_records(log.response_summary)
            result.total_records = len(records)

            for record in records:
                if cancel_event is not None and cancel_event.is_set():
                    result.cancelled = True
                    logger.warning(
                        f"{self.system_name} sync {run.import_job_id} cancelled after "
                        f"{result.processed_count}/{len(records)} records"
                    )
                    break
                result.record(await self._process_record(run, record))

        except Exception as e:
            logger.exception(f"{self.system_name} sync {run.import_job_id} failed: {e}")
            result.message = f"Sync failed: {e}"
            return await self._finish(result, JobStatus.FAILED, error_summary=str(e))

        result.success = True
        result.message = self._completion_message(result)
        if result.cancelled:
            status = JobStatus.CANCELLED
        elif result.rejected_count or result.failed_count:
            status = JobStatus.COMPLETED_WITH_ERRORS
        else:
            status = JobStatus.COMPLETED
        return await self._finish(result, status)

    async def _finish(
        self,
        result: SyncResult,
        status: JobStatus,
        error_summary: Optional[str] = None,
    ) -> SyncResult:
        result.completed_at = self._clock.now()
        await self._monitoring.update_job(
            result.import_job_id,
            status=status,
            total_records=result.total_records,
            success_count=result.imported_count + result.updated_count,
            failure_count=result.rejected_count + result.failed_count,
            skipped_count=result.total_records - result.processed_count + result.conflicts_preserved_count,
            error_summary=error_summary,
        )
        logger.info(f"{self.system_name} sync {result.import_job_id} finished ({status.value}): {result.message}")
        return result

    async def _process_record(self, run: SyncRun, record: ExternalRecord) -> SyncOutcome:
        mapping = apply_connector_mapping(
            record.data,
            run.connector.mapping_configuration,
            self.allowed_transforms,
            self._transform_ctx,
        )

        async with self._locks.hold((run.connector.id, record.external_id)):
            try:
                async with self._database.transaction() as session:
                    return await self._reconcile(session, run, record, mapping)
            except Exception as e:
                # Staging write rolled back; the failure itself is still recorded
                logger.error(f"{self.system_name} record {record.external_id!r} failed: {e}")
                async with self._database.transaction() as session:
                    await self.record_repository(session).add(
                        self._new_sync_record(
                            run,
                            record,
                            SyncRecordStatus.FAILED,
                            rejection_reason=f"Processing error: {e}",
                        )
                    )
                return SyncOutcome.FAILED

    async def _reject(
        self,
        session: AsyncSession,
        run: SyncRun,
        record: ExternalRecord,
        reason: str,
    ) -> SyncOutcome:
        await self.record_repository(session).add(
            self._new_sync_record(run, record, SyncRecordStatus.REJECTED, rejection_reason=reason)
        )
        logger.info(f"{self.system_name} record {record.external_id!r} rejected: {reason}")
        return SyncOutcome.REJECTED

    # ============================================================
    # CONNECTION TEST
    # ============================================================

    async def test_connection(self, connector_id: int, initiated_by: str) -> TestConnectionResult:
        """GET /health through the Execution Engine. Never raises."""
        try:
            connector = await self._load_connector(connector_id, require_enabled=False)
        except (ConnectorNotFoundError, ConnectorTypeMismatchError) as e:
            return TestConnectionResult(success=False, message=e.message)

        correlation_id = str(uuid.uuid4())
        try:
            log = await self._execution.execute_with_retry(
                connector_id,
                "test-connection",
                correlation_id,
                initiated_by,
                lambda: self._http.get(connector, self._sync_config.health_resource, correlation_id),
            )
        except Exception as e:
            logger.warning(f"{self.system_name} connection test for connector {connector_id} failed: {e}")
            return TestConnectionResult(
                success=False,
                message=f"Connection test failed: {e}",
                correlation_id=correlation_id,
                error_details=repr(e),
            )

        if log.status == IntegrationLogStatus.SUCCESS.value:
            return TestConnectionResult(
                success=True,
                message=self.connection_success_message,
                correlation_id=correlation_id,
                duration_ms=log.duration_ms,
            )
        return TestConnectionResult(
            success=False,
            message=f"Connection test failed: {log.error_message}",
            correlation_id=correlation_id,
            duration_ms=log.duration_ms,
            error_details=log.error_details,
        )

    # ============================================================
    # QUERIES AND APPROVAL
    # ============================================================

    async def get_sync_history(self, connector_id: int, limit: int = 100) -> List:
        async with self._database.transaction() as session:
            return await self.record_repository(session).list_history(connector_id, limit)

    async def get_rejected_records(self, connector_id: int, limit: int = 100) -> List:
        async with self._database.transaction() as session:
            return await self.record_repository(session).list_by_status(
                connector_id, SyncRecordStatus.REJECTED.value, limit
            )

    async def get_job_records(self, import_job_id: str) -> List:
        """Every sync record written by one run, in processing order."""
        async with self._database.transaction() as session:
            return await self.record_repository(session).list_by_job(import_job_id)

    async def approve_entity(self, entity_id: int, approved_by: str):
        """Mark a staging entity approved; later syncs then respect it."""
        async with self._database.transaction() as session:
            repo = self.entity_repository(session)
            entity = await repo.get(entity_id)
            if entity is None:
                raise RecordNotFoundError(self.entity_repository.__name__, entity_id)
            entity.is_approved = True
            entity.approved_by = approved_by
            entity.approved_at = self._clock.now()
            await repo.save()

        logger.info(f"{self.system_name} entity {entity_id} approved by {approved_by}")
        return entity

"""
Integration Monitoring - Service.

============================================================
PURPOSE
============================================================
Operational visibility into integration activity:
- Job search with pagination
- Job details (job + correlated logs)
- Approval override history
- Aggregate statistics over a date range

Also owns the job metadata lifecycle (create / update) on
behalf of the sync services.

============================================================
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.clock import ClockProtocol, SystemClock, elapsed_ms
from storage.database import Database
from storage.models.connectors import (
    IntegrationJobMetadata,
    IntegrationLogStatus,
    JobStatus,
    TERMINAL_JOB_STATUSES,
)
from storage.repositories.connectors import IntegrationLogRepository, JobMetadataRepository
from storage.repositories.exceptions import RecordNotFoundError
from storage.repositories.staging import FinanceSyncRecordRepository
from monitoring.models import (
    FINANCE_ENTITY_TYPE,
    OVERRIDE_ACTION,
    ApprovalHistoryEntry,
    IntegrationStatistics,
    JobDetails,
)


logger = logging.getLogger(__name__)


def _rate(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(100.0 * part / whole, 2)


class IntegrationMonitoringService:
    """Read-mostly monitoring over integration history."""

    def __init__(self, database: Database, clock: Optional[ClockProtocol] = None):
        self._database = database
        self._clock = clock or SystemClock()

    # ============================================================
    # JOB LIFECYCLE
    # ============================================================

    async def create_job(
        self,
        job_id: str,
        job_type: str,
        correlation_id: str,
        initiated_by: str,
        connector_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> IntegrationJobMetadata:
        """Record a job as Running."""
        job = IntegrationJobMetadata(
            job_id=job_id,
            connector_id=connector_id,
            correlation_id=correlation_id,
            job_type=job_type,
            status=JobStatus.RUNNING.value,
            started_at=self._clock.now(),
            initiated_by=initiated_by,
            notes=notes,
        )
        async with self._database.transaction() as session:
            await JobMetadataRepository(session).add(job)

        logger.info(f"Job started: {job_id} ({job_type}, connector={connector_id})")
        return job

    async def update_job(self, job_id: str, **changes: Any) -> IntegrationJobMetadata:
        """
        Apply field changes to a job.

        Moving to a terminal status stamps completed_at and duration.

        Raises:
            RecordNotFoundError: Unknown job id
        """
        async with self._database.transaction() as session:
            repo = JobMetadataRepository(session)
            job = await repo.get_by_job_id(job_id)
            if job is None:
                raise RecordNotFoundError("JobMetadataRepository", job_id, "job_id")

            for name, value in changes.items():
                if isinstance(value, JobStatus):
                    value = value.value
                setattr(job, name, value)

            if job.status in {s.value for s in TERMINAL_JOB_STATUSES} and job.completed_at is None:
                job.completed_at = self._clock.now()
                job.duration_ms = elapsed_ms(job.started_at, job.completed_at)
            await repo.save()

        logger.info(
            f"Job updated: {job_id} status={job.status} "
            f"(success={job.success_count}, failed={job.failure_count}, skipped={job.skipped_count})"
        )
        return job

    # ============================================================
    # QUERIES
    # ============================================================

    async def search_jobs(
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
        """Filtered job search, newest first. Returns (page, total_count)."""
        async with self._database.transaction() as session:
            return await JobMetadataRepository(session).search(
                start_date=start_date,
                end_date=end_date,
                status=status,
                connector_id=connector_id,
                job_type=job_type,
                initiated_by=initiated_by,
                page=page,
                page_size=page_size,
            )

    async def get_job_details(self, job_id: str) -> Optional[JobDetails]:
        async with self._database.transaction() as session:
            job = await JobMetadataRepository(session).get_by_job_id(job_id)
            if job is None:
                return None
            logs = await IntegrationLogRepository(session).list_by_correlation_id(job.correlation_id)
        return JobDetails(job=job, logs=logs)

    async def get_approval_history(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        connector_id: Optional[int] = None,
        approved_by: Optional[str] = None,
    ) -> List[ApprovalHistoryEntry]:
        """Finance sync records carrying an override actor, newest first."""
        async with self._database.transaction() as session:
            records = await FinanceSyncRecordRepository(session).list_overrides(
                start_date=start_date,
                end_date=end_date,
                connector_id=connector_id,
                approved_by=approved_by,
            )

        return [
            ApprovalHistoryEntry(
                id=record.id,
                timestamp=record.synced_at,
                action=OVERRIDE_ACTION,
                approved_by=record.approved_override_by,
                connector_id=record.connector_id,
                entity_type=FINANCE_ENTITY_TYPE,
                external_id=record.external_id,
                correlation_id=record.correlation_id,
                details=f"Override approved for external ID: {record.external_id}",
            )
            for record in records
        ]

    async def get_statistics(
        self,
        start_date: datetime,
        end_date: datetime,
        connector_id: Optional[int] = None,
    ) -> IntegrationStatistics:
        async with self._database.transaction() as session:
            jobs = await JobMetadataRepository(session).list_in_range(start_date, end_date, connector_id)
            logs = await IntegrationLogRepository(session).list_in_range(start_date, end_date, connector_id)

        stats = IntegrationStatistics(start_date=start_date, end_date=end_date, connector_id=connector_id)

        by_status: Dict[str, int] = {}
        durations = []
        for job in jobs:
            by_status[job.status] = by_status.get(job.status, 0) + 1
            stats.total_records += job.total_records
            stats.successful_records += job.success_count
            stats.failed_records += job.failure_count
            stats.skipped_records += job.skipped_count
            if job.duration_ms is not None:
                durations.append(job.duration_ms)

        stats.total_jobs = len(jobs)
        stats.jobs_by_status = by_status
        stats.job_success_rate = _rate(by_status.get(JobStatus.COMPLETED.value, 0), stats.total_jobs)
        stats.record_success_rate = _rate(stats.successful_records, stats.total_records)
        if durations:
            stats.average_job_duration_ms = sum(durations) / len(durations)

        stats.total_api_calls = len(logs)
        for log in logs:
            if log.status == IntegrationLogStatus.SUCCESS.value:
                stats.successful_api_calls += 1
            elif log.status == IntegrationLogStatus.FAILED.value:
                stats.failed_api_calls += 1
            elif log.status == IntegrationLogStatus.SKIPPED.value:
                stats.skipped_api_calls += 1
        stats.api_success_rate = _rate(stats.successful_api_calls, stats.total_api_calls)

        return stats

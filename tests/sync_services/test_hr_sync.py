"""
Tests for HRSyncService.

============================================================
PURPOSE
============================================================
- Preconditions fail before any network call
- New records import, existing unapproved records update
- Approved entities are never overwritten
- Pull failure and cancellation are reflected in the job

============================================================
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from core.exceptions import (
    ConnectorDisabledError,
    ConnectorNotFoundError,
    ConnectorTypeMismatchError,
    TransientExecutionError,
)
from connectors.http_client import ConnectorHttpClient, IntegrationCallResult
from execution_engine import IntegrationExecutionService
from monitoring import IntegrationMonitoringService
from storage.models.connectors import ConnectorType, JobStatus
from storage.models.staging import SyncRecordStatus
from storage.repositories.exceptions import RecordNotFoundError
from storage.repositories.staging import HREntityRepository, HRSyncRecordRepository
from sync_services import APPROVED_DATA_MESSAGE, HRSyncService


HR_MAPPING = json.dumps({
    "mappings": [
        {"externalField": "name", "internalField": "fullName", "required": True},
        {"externalField": "hours", "internalField": "fte", "transform": "fte"},
    ]
})


def employees(*records) -> IntegrationCallResult:
    return IntegrationCallResult(
        http_method="GET",
        endpoint="/employees",
        status_code=200,
        response_body=json.dumps(list(records)),
    )


@pytest.fixture
def http():
    return AsyncMock(spec=ConnectorHttpClient)


@pytest.fixture
def monitoring(database, clock):
    return IntegrationMonitoringService(database, clock)


@pytest.fixture
def service(database, clock, http, monitoring):
    async def no_sleep(seconds):
        clock.advance(seconds=seconds)

    execution = IntegrationExecutionService(database, clock=clock, sleep=no_sleep)
    return HRSyncService(database, execution, http_client=http, monitoring=monitoring, clock=clock)


@pytest.fixture
async def hr_connector(make_connector):
    return await make_connector(ConnectorType.HR.value, mapping_configuration=HR_MAPPING)


async def entity_for(database, connector_id, external_id):
    async with database.transaction() as session:
        return await HREntityRepository(session).get_by_external_id(connector_id, external_id)


# ============================================================
# PRECONDITIONS
# ============================================================

@pytest.mark.asyncio
class TestPreconditions:

    async def test_unknown_connector(self, service, http):
        with pytest.raises(ConnectorNotFoundError):
            await service.execute_sync(999, "tester")
        http.get.assert_not_awaited()

    async def test_wrong_type(self, service, http, make_connector):
        finance = await make_connector(ConnectorType.FINANCE.value)
        with pytest.raises(ConnectorTypeMismatchError):
            await service.execute_sync(finance.id, "tester")
        http.get.assert_not_awaited()

    async def test_disabled(self, service, http, make_connector):
        connector = await make_connector(enabled=False)
        with pytest.raises(ConnectorDisabledError):
            await service.execute_sync(connector.id, "tester")
        http.get.assert_not_awaited()


# ============================================================
# RECONCILIATION
# ============================================================

@pytest.mark.asyncio
class TestExecuteSync:

    async def test_imports_new_records(self, service, http, hr_connector, database):
        http.get.return_value = employees(
            {"externalId": "E1", "name": "Ada", "hours": 20},
            {"externalId": "E2", "name": "Grace", "hours": 40},
        )

        result = await service.execute_sync(hr_connector.id, "tester")

        assert result.success
        assert result.imported_count == 2
        assert result.message == "Sync completed. Imported: 2, Updated: 0, Rejected: 0"
        assert result.import_job_id.startswith("JOB-20260301093000-")
        http.get.assert_awaited_once()
        assert http.get.await_args.args[1] == "employees"

        entity = await entity_for(database, hr_connector.id, "E1")
        assert entity.mapped_data == {"fullName": "Ada", "fte": 0.5}
        assert entity.data["hours"] == 20
        assert entity.entity_type == "Employee"
        assert entity.import_job_id == result.import_job_id

    async def test_updates_unapproved_entity(self, service, http, hr_connector, database):
        http.get.return_value = employees({"externalId": "E1", "name": "Ada"})
        await service.execute_sync(hr_connector.id, "tester")

        http.get.return_value = employees({"externalId": "E1", "name": "Ada Lovelace"})
        result = await service.execute_sync(hr_connector.id, "tester")

        assert (result.imported_count, result.updated_count) == (0, 1)
        entity = await entity_for(database, hr_connector.id, "E1")
        assert entity.mapped_data == {"fullName": "Ada Lovelace"}
        assert entity.updated_at is not None

    async def test_approved_entity_rejected(self, service, http, hr_connector, database):
        http.get.return_value = employees({"externalId": "E1", "name": "Ada"})
        await service.execute_sync(hr_connector.id, "tester")
        entity = await entity_for(database, hr_connector.id, "E1")
        await service.approve_entity(entity.id, "hr-admin")

        http.get.return_value = employees({"externalId": "E1", "name": "Overwritten"})
        result = await service.execute_sync(hr_connector.id, "tester")

        assert result.rejected_count == 1
        assert result.updated_count == 0
        entity = await entity_for(database, hr_connector.id, "E1")
        assert entity.mapped_data == {"fullName": "Ada"}

        (rejected,) = await service.get_rejected_records(hr_connector.id)
        assert rejected.rejection_reason == APPROVED_DATA_MESSAGE
        assert rejected.overwrote_approved_data is False

    async def test_mapping_failure_rejects_record_only(self, service, http, hr_connector):
        http.get.return_value = employees(
            {"externalId": "E1", "hours": 40},
            {"externalId": "E2", "name": "Grace"},
        )

        result = await service.execute_sync(hr_connector.id, "tester")

        assert result.success
        assert (result.imported_count, result.rejected_count) == (1, 1)
        (rejected,) = await service.get_rejected_records(hr_connector.id)
        assert rejected.external_id == "E1"
        assert rejected.rejection_reason == "Required field 'name' is missing"

    async def test_no_mapping_configuration(self, service, http, make_connector):
        connector = await make_connector()
        http.get.return_value = employees({"externalId": "E1", "name": "Ada"})

        result = await service.execute_sync(connector.id, "tester")

        assert result.rejected_count == 1
        history = await service.get_sync_history(connector.id)
        assert [r.status for r in history] == [SyncRecordStatus.REJECTED.value]

    async def test_staging_write_failure_fails_record_only(
        self, service, http, hr_connector, database, monitoring, monkeypatch
    ):
        original_add = HRSyncRecordRepository.add

        async def add(repo, record):
            if record.external_id == "E1" and record.status == SyncRecordStatus.SUCCESS.value:
                raise RuntimeError("disk I/O error")
            return await original_add(repo, record)

        monkeypatch.setattr(HRSyncRecordRepository, "add", add)
        http.get.return_value = employees(
            {"externalId": "E1", "name": "Ada"},
            {"externalId": "E2", "name": "Grace"},
        )

        result = await service.execute_sync(hr_connector.id, "tester")

        assert result.success
        assert (result.imported_count, result.failed_count) == (1, 1)
        assert await entity_for(database, hr_connector.id, "E1") is None
        assert await entity_for(database, hr_connector.id, "E2") is not None

        records = await service.get_job_records(result.import_job_id)
        assert [(r.external_id, r.status) for r in records] == [
            ("E1", SyncRecordStatus.FAILED.value),
            ("E2", SyncRecordStatus.SUCCESS.value),
        ]
        assert records[0].rejection_reason == "Processing error: disk I/O error"

        details = await monitoring.get_job_details(result.import_job_id)
        assert details.job.status == JobStatus.COMPLETED_WITH_ERRORS.value
        assert details.job.failure_count == 1

    async def test_job_records_scoped_to_run(self, service, http, hr_connector):
        http.get.return_value = employees({"externalId": "E1", "name": "Ada"})
        first = await service.execute_sync(hr_connector.id, "tester")
        second = await service.execute_sync(hr_connector.id, "tester")

        (record,) = await service.get_job_records(second.import_job_id)
        assert record.import_job_id == second.import_job_id
        assert record.import_job_id != first.import_job_id
        assert await service.get_job_records("JOB-unknown") == []

    async def test_approve_unknown_entity(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.approve_entity(404, "hr-admin")


# ============================================================
# FAILURE, CANCELLATION AND JOB METADATA
# ============================================================

@pytest.mark.asyncio
class TestJobLifecycle:

    async def test_pull_failure(self, service, http, make_connector, monitoring):
        connector = await make_connector(mapping_configuration=HR_MAPPING, max_retry_attempts=1)
        http.get.side_effect = TransientExecutionError("HTTP 503: Service Unavailable", status_code=503)

        result = await service.execute_sync(connector.id, "tester")

        assert not result.success
        assert result.message == "Sync failed: HTTP 503: Service Unavailable"
        assert http.get.await_count == 2
        details = await monitoring.get_job_details(result.import_job_id)
        assert details.job.status == JobStatus.FAILED.value
        assert len(details.logs) == 1

    async def test_job_metadata(self, service, http, hr_connector, monitoring):
        http.get.return_value = employees(
            {"externalId": "E1", "name": "Ada"},
            {"externalId": "E2"},
        )

        result = await service.execute_sync(hr_connector.id, "scheduler", is_scheduled=True)

        details = await monitoring.get_job_details(result.import_job_id)
        job = details.job
        assert job.status == JobStatus.COMPLETED_WITH_ERRORS.value
        assert job.job_type == "HRSync"
        assert job.notes == "scheduled"
        assert (job.total_records, job.success_count, job.failure_count) == (2, 1, 1)
        assert job.completed_at is not None
        assert job.correlation_id == result.correlation_id

    async def test_cancellation_between_records(self, service, http, hr_connector, monitoring):
        http.get.return_value = employees(
            {"externalId": "E1", "name": "Ada"},
            {"externalId": "E2", "name": "Grace"},
        )
        cancel = asyncio.Event()
        cancel.set()

        result = await service.execute_sync(hr_connector.id, "tester", cancel_event=cancel)

        assert result.cancelled
        assert result.processed_count == 0
        details = await monitoring.get_job_details(result.import_job_id)
        assert details.job.status == JobStatus.CANCELLED.value
        assert details.job.skipped_count == 2


@pytest.mark.asyncio
class TestConnection:

    async def test_success(self, service, http, hr_connector):
        http.get.return_value = IntegrationCallResult("GET", "/health", 200, "ok")

        result = await service.test_connection(hr_connector.id, "tester")

        assert result.success
        assert result.message == "Successfully connected to HR system and validated authentication"
        assert http.get.await_args.args[1] == "health"

    async def test_unknown_connector_does_not_raise(self, service):
        result = await service.test_connection(999, "tester")
        assert not result.success

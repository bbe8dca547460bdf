"""
Tests for FinanceSyncService.

============================================================
PURPOSE
============================================================
- Approved manual data is preserved, repeatedly, without error
- An override actor replaces approved data and is recorded
- Approval history surfaces overrides

============================================================
"""

import json
import logging
from unittest.mock import AsyncMock

import pytest

from connectors.http_client import ConnectorHttpClient, IntegrationCallResult
from execution_engine import IntegrationExecutionService
from monitoring import IntegrationMonitoringService
from storage.models.connectors import ConnectorType, JobStatus
from storage.models.staging import ConflictResolution, SyncRecordStatus
from storage.repositories.staging import FinanceEntityRepository, FinanceSyncRecordRepository
from sync_services import CONFLICT_MESSAGE, FinanceSyncService


FINANCE_MAPPING = json.dumps({
    "mappings": [
        {"externalField": "amount", "internalField": "amount", "required": True},
        {"externalField": "lines", "internalField": "total", "transform": "sum"},
    ]
})


def ledger(*records) -> IntegrationCallResult:
    return IntegrationCallResult(
        http_method="GET",
        endpoint="/financial-data",
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
    return FinanceSyncService(database, execution, http_client=http, monitoring=monitoring, clock=clock)


@pytest.fixture
async def finance_connector(make_connector):
    return await make_connector(
        ConnectorType.FINANCE.value,
        name="SAP Finance",
        mapping_configuration=FINANCE_MAPPING,
        max_retry_attempts=2,
        use_exponential_backoff=False,
    )


async def entity_for(database, connector_id, external_id):
    async with database.transaction() as session:
        return await FinanceEntityRepository(session).get_by_external_id(connector_id, external_id)


@pytest.fixture
async def approved_e1(service, http, finance_connector, database):
    """E1 imported and approved by a controller."""
    http.get.return_value = ledger({"externalId": "E1", "entityType": "Spend", "amount": 100})
    await service.execute_sync(finance_connector.id, "tester")
    entity = await entity_for(database, finance_connector.id, "E1")
    await service.approve_entity(entity.id, "controller")
    return entity


@pytest.mark.asyncio
class TestImport:

    async def test_new_record(self, service, http, finance_connector, database, clock):
        http.get.return_value = ledger({"externalId": "F1", "amount": 10, "lines": [1, 2.5], "memo": "kept"})

        result = await service.execute_sync(finance_connector.id, "tester")

        assert result.imported_count == 1
        assert http.get.await_args.args[1] == "financial-data"
        entity = await entity_for(database, finance_connector.id, "F1")
        assert entity.mapped_data == {"amount": 10, "total": 3.5}
        assert entity.data["memo"] == "kept"
        assert entity.source_system == "SAP Finance"
        assert entity.extract_timestamp == clock.format_iso()
        assert entity.entity_type == "Unknown"

        (record,) = await service.get_sync_history(finance_connector.id)
        assert record.conflict_resolution == ConflictResolution.NO_CONFLICT.value
        assert record.conflict_detected is False

    async def test_extract_timestamp_from_record(self, service, http, finance_connector, database):
        http.get.return_value = ledger({"externalId": "F2", "amount": 1, "extractTimestamp": "2026-02-28T23:00:00Z"})

        await service.execute_sync(finance_connector.id, "tester")

        entity = await entity_for(database, finance_connector.id, "F2")
        assert entity.extract_timestamp == "2026-02-28T23:00:00Z"


@pytest.mark.asyncio
class TestConflictPreservation:

    async def test_approved_data_preserved(self, service, http, finance_connector, approved_e1, database, monitoring):
        http.get.return_value = ledger({"externalId": "E1", "entityType": "Spend", "amount": 999})

        result = await service.execute_sync(finance_connector.id, "tester")

        assert result.success
        assert result.conflicts_preserved_count == 1
        assert result.updated_count == 0
        assert result.message == (
            "Sync completed. Imported: 0, Updated: 0, Conflicts Preserved: 1, Rejected: 0"
        )
        entity = await entity_for(database, finance_connector.id, "E1")
        assert entity.data["amount"] == 100
        assert entity.mapped_data == {"amount": 100}

        (conflict,) = await service.get_conflicts(finance_connector.id)
        assert conflict.status == SyncRecordStatus.CONFLICT_PRESERVED.value
        assert conflict.conflict_resolution == ConflictResolution.PRESERVED_MANUAL.value
        assert conflict.rejection_reason == CONFLICT_MESSAGE
        assert conflict.finance_entity_id == approved_e1.id

        details = await monitoring.get_job_details(result.import_job_id)
        assert details.job.status == JobStatus.COMPLETED.value
        assert details.job.skipped_count == 1

    async def test_preserved_conflict_logged_as_warning(self, service, http, finance_connector, approved_e1, caplog):
        http.get.return_value = ledger({"externalId": "E1", "amount": 999})

        with caplog.at_level(logging.INFO, logger="sync_services.finance_sync_service"):
            await service.execute_sync(finance_connector.id, "tester")

        (entry,) = [r for r in caplog.records if "manual data preserved" in r.getMessage()]
        assert entry.levelno == logging.WARNING

    async def test_preservation_is_idempotent(self, service, http, finance_connector, approved_e1, database):
        http.get.return_value = ledger({"externalId": "E1", "amount": 999})

        first = await service.execute_sync(finance_connector.id, "tester")
        second = await service.execute_sync(finance_connector.id, "tester")

        for result in (first, second):
            assert (result.conflicts_preserved_count, result.updated_count) == (1, 0)
        assert first.import_job_id != second.import_job_id
        entity = await entity_for(database, finance_connector.id, "E1")
        assert entity.data["amount"] == 100
        assert len(await service.get_conflicts(finance_connector.id)) == 2

    async def test_admin_override(self, service, http, finance_connector, approved_e1, database, monitoring):
        http.get.return_value = ledger({"externalId": "E1", "amount": 250})

        result = await service.execute_sync(finance_connector.id, "tester", approved_override_by="cfo")

        assert (result.updated_count, result.conflicts_preserved_count) == (1, 0)
        entity = await entity_for(database, finance_connector.id, "E1")
        assert entity.data["amount"] == 250

        (record,) = [r for r in await service.get_sync_history(finance_connector.id) if r.overwrote_approved_data]
        assert record.conflict_resolution == ConflictResolution.ADMIN_OVERRIDE.value
        assert record.approved_override_by == "cfo"

        (entry,) = await monitoring.get_approval_history(approved_by="cfo")
        assert entry.external_id == "E1"
        assert entry.details == "Override approved for external ID: E1"
        assert entry.entity_type == "FinanceEntity"

    async def test_failed_override_write_keeps_approved_data(
        self, service, http, finance_connector, approved_e1, database, monitoring, monkeypatch
    ):
        original_add = FinanceSyncRecordRepository.add

        async def add(repo, record):
            if record.external_id == "E1" and record.status == SyncRecordStatus.SUCCESS.value:
                raise RuntimeError("disk I/O error")
            return await original_add(repo, record)

        monkeypatch.setattr(FinanceSyncRecordRepository, "add", add)
        http.get.return_value = ledger(
            {"externalId": "E1", "amount": 250},
            {"externalId": "F9", "amount": 7},
        )

        result = await service.execute_sync(finance_connector.id, "tester", approved_override_by="cfo")

        assert result.success
        assert (result.updated_count, result.imported_count, result.failed_count) == (0, 1, 1)
        entity = await entity_for(database, finance_connector.id, "E1")
        assert entity.data["amount"] == 100
        assert entity.is_approved

        records = await service.get_job_records(result.import_job_id)
        assert [(r.external_id, r.status) for r in records] == [
            ("E1", SyncRecordStatus.FAILED.value),
            ("F9", SyncRecordStatus.SUCCESS.value),
        ]
        assert records[0].overwrote_approved_data is False
        assert await monitoring.get_approval_history() == []

    async def test_override_actor_not_recorded_without_conflict(self, service, http, finance_connector, monitoring):
        http.get.return_value = ledger({"externalId": "N1", "amount": 5})
        await service.execute_sync(finance_connector.id, "tester")

        await service.execute_sync(finance_connector.id, "tester", approved_override_by="cfo")

        assert await monitoring.get_approval_history() == []


@pytest.mark.asyncio
class TestFinanceConnection:

    async def test_success_message(self, service, http, finance_connector):
        http.get.return_value = IntegrationCallResult("GET", "/health", 200, "ok")

        result = await service.test_connection(finance_connector.id, "tester")

        assert result.success
        assert result.message == (
            "Successfully connected to Finance system, validated authentication and required permissions"
        )

    async def test_failure_after_retries(self, service, http, finance_connector):
        http.get.side_effect = ConnectionError("refused")

        result = await service.test_connection(finance_connector.id, "tester")

        assert not result.success
        assert result.message == "Connection test failed: refused"
        assert http.get.await_count == 3

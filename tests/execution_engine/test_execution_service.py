"""
Tests for the Execution Engine.

============================================================
PURPOSE
============================================================
- Retry exhaustion: N retries -> N+1 calls, one Failed log
- Disabled short-circuit: call never invoked, Skipped log
- Backoff schedule: d * 2^(k-1) exponential, d fixed

============================================================
"""

import pytest
from unittest.mock import AsyncMock

from core.config import ExecutionConfig
from core.exceptions import ConnectorNotFoundError, TransientExecutionError
from connectors.http_client import IntegrationCallResult
from execution_engine import DISABLED_MESSAGE, IntegrationExecutionService, compute_retry_delay
from storage.models.connectors import IntegrationLogStatus


def ok_result(body: str = "[]") -> IntegrationCallResult:
    return IntegrationCallResult(
        http_method="GET",
        endpoint="/employees",
        status_code=200,
        response_body=body,
        request_summary="GET http://erp.test/api/employees",
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(database, clock, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds=seconds)

    return IntegrationExecutionService(database, clock=clock, sleep=fake_sleep)


# ============================================================
# BACKOFF
# ============================================================

class TestBackoff:

    def test_exponential(self):
        assert [compute_retry_delay(5, k, True) for k in (1, 2, 3, 4)] == [5, 10, 20, 40]

    def test_fixed(self):
        assert [compute_retry_delay(5, k, False) for k in (1, 2, 3)] == [5, 5, 5]

    def test_rejects_attempt_zero(self):
        with pytest.raises(ValueError):
            compute_retry_delay(5, 0, True)


# ============================================================
# EXECUTION
# ============================================================

class TestExecuteWithRetry:

    @pytest.mark.asyncio
    async def test_retry_exhaustion(self, service, make_connector, sleeps):
        connector = await make_connector(max_retry_attempts=3, retry_delay_seconds=2)
        call = AsyncMock(side_effect=TransientExecutionError("HTTP 502: Bad Gateway", status_code=502, endpoint="/employees"))

        log = await service.execute_with_retry(connector.id, "pull", "corr-1", "tester", call)

        assert call.await_count == 4
        assert log.status == IntegrationLogStatus.FAILED.value
        assert log.retry_attempts == 3
        assert log.error_message == "HTTP 502: Bad Gateway"
        assert "TransientExecutionError" in log.error_details
        assert log.http_status_code == 502
        assert sleeps == [2, 4, 8]
        assert log.duration_ms == 14000

    @pytest.mark.asyncio
    async def test_fixed_backoff(self, service, make_connector, sleeps):
        connector = await make_connector(max_retry_attempts=2, retry_delay_seconds=3, use_exponential_backoff=False)
        call = AsyncMock(side_effect=RuntimeError("boom"))

        await service.execute_with_retry(connector.id, "pull", "corr-1", "tester", call)

        assert sleeps == [3, 3]

    @pytest.mark.asyncio
    async def test_success_after_retry(self, service, make_connector):
        connector = await make_connector(max_retry_attempts=3)
        call = AsyncMock(side_effect=[RuntimeError("flaky"), ok_result('[{"externalId": "E1"}]')])

        log = await service.execute_with_retry(connector.id, "pull", "corr-2", "tester", call)

        assert log.status == IntegrationLogStatus.SUCCESS.value
        assert log.retry_attempts == 1
        assert log.http_status_code == 200
        assert log.endpoint == "/employees"
        assert log.response_summary == '[{"externalId": "E1"}]'
        assert log.id is not None

    @pytest.mark.asyncio
    async def test_disabled_connector_short_circuits(self, service, make_connector):
        connector = await make_connector(enabled=False)
        call = AsyncMock(return_value=ok_result())

        log = await service.execute_with_retry(connector.id, "pull", "corr-3", "tester", call)

        call.assert_not_awaited()
        assert log.status == IntegrationLogStatus.SKIPPED.value
        assert log.error_message == DISABLED_MESSAGE
        assert log.duration_ms == 0

    @pytest.mark.asyncio
    async def test_unknown_connector(self, service):
        with pytest.raises(ConnectorNotFoundError):
            await service.execute_with_retry(404, "pull", "corr-4", "tester", AsyncMock())

    @pytest.mark.asyncio
    async def test_request_summary_truncated(self, database, clock, make_connector):
        service = IntegrationExecutionService(database, ExecutionConfig(summary_max_chars=10), clock=clock)
        connector = await make_connector()
        result = ok_result()
        result.request_summary = "x" * 50

        log = await service.execute_with_retry(connector.id, "pull", "corr-5", "tester", AsyncMock(return_value=result))

        assert log.request_summary == "x" * 10

    @pytest.mark.asyncio
    async def test_exactly_one_log_per_call(self, service, make_connector):
        connector = await make_connector(max_retry_attempts=2, retry_delay_seconds=0)
        await service.execute_with_retry(connector.id, "pull", "corr-6", "tester", AsyncMock(side_effect=RuntimeError("x")))
        await service.execute_with_retry(connector.id, "pull", "corr-7", "tester", AsyncMock(return_value=ok_result()))

        logs = await service.get_connector_logs(connector.id)
        assert len(logs) == 2
        assert [l.correlation_id for l in await service.get_logs_by_correlation_id("corr-6")] == ["corr-6"]

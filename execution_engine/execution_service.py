"""
Execution Engine - Integration Execution Service.

============================================================
PURPOSE
============================================================
Executes an arbitrary outbound call under a connector's retry
policy and records exactly one immutable IntegrationLog for it.

FLOW:
1. Load connector (unknown -> ConnectorNotFoundError, no log)
2. Disabled connector -> Skipped log, call never invoked
3. Up to max_retry_attempts + 1 sequential attempts, sleeping
   compute_retry_delay(...) before every retry
4. Finalize as Success or Failed and persist the log once

============================================================
"""

import asyncio
import logging
import traceback
from typing import Awaitable, Callable, List, Optional

from core.clock import ClockProtocol, SystemClock, elapsed_ms
from core.config import ExecutionConfig
from core.exceptions import ConnectorNotFoundError, TransientExecutionError
from connectors.http_client import IntegrationCallResult
from execution_engine.backoff import compute_retry_delay
from storage.database import Database
from storage.models.connectors import Connector, IntegrationLog, IntegrationLogStatus
from storage.repositories.connectors import ConnectorRepository, IntegrationLogRepository


logger = logging.getLogger(__name__)


DISABLED_MESSAGE = "Connector is disabled. No outbound calls will be executed."

OutboundCall = Callable[[], Awaitable[IntegrationCallResult]]
SleepFunc = Callable[[float], Awaitable[None]]


class IntegrationExecutionService:
    """
    Retry- and backoff-aware wrapper around outbound connector calls.

    Attempts within one call are strictly sequential. Independent
    calls (other connectors) may run concurrently.
    """

    def __init__(
        self,
        database: Database,
        config: Optional[ExecutionConfig] = None,
        clock: Optional[ClockProtocol] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self._database = database
        self._config = config or ExecutionConfig()
        self._clock = clock or SystemClock()
        self._sleep = sleep

    # ----- EXECUTION -----

    async def execute_with_retry(
        self,
        connector_id: int,
        operation_type: str,
        correlation_id: str,
        initiated_by: str,
        call: OutboundCall,
    ) -> IntegrationLog:
        """
        Execute `call` under the connector's retry policy.

        Args:
            connector_id: Connector to execute against
            operation_type: pull, push, sync, test-connection, ...
            correlation_id: Opaque id linking related records
            initiated_by: Acting user or "system"
            call: Zero-arg coroutine function performing one attempt

        Returns:
            The persisted IntegrationLog

        Raises:
            ConnectorNotFoundError: If the connector does not exist
        """
        async with self._database.transaction() as session:
            connector = await ConnectorRepository(session).get(connector_id)
        if connector is None:
            raise ConnectorNotFoundError(connector_id)

        log = IntegrationLog(
            connector_id=connector_id,
            correlation_id=correlation_id,
            operation_type=operation_type,
            initiated_by=initiated_by,
            status=IntegrationLogStatus.IN_PROGRESS.value,
            retry_attempts=0,
            started_at=self._clock.now(),
        )

        if not connector.is_enabled:
            log.status = IntegrationLogStatus.SKIPPED.value
            log.error_message = DISABLED_MESSAGE
            log.completed_at = log.started_at
            log.duration_ms = 0
            logger.info(
                f"Skipped {operation_type} on disabled connector {connector_id} "
                f"(correlation_id={correlation_id})"
            )
            return await self._persist(log)

        await self._run_attempts(connector, log, call)
        return await self._persist(log)

    async def _run_attempts(
        self,
        connector: Connector,
        log: IntegrationLog,
        call: OutboundCall,
    ) -> None:
        max_retries = max(connector.max_retry_attempts, 0)
        last_error: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = compute_retry_delay(
                    connector.retry_delay_seconds,
                    attempt,
                    connector.use_exponential_backoff,
                )
                logger.warning(
                    f"Connector {connector.id} {log.operation_type} failed "
                    f"(attempt {attempt}/{max_retries + 1}): {last_error}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)

            try:
                result = await call()
            except Exception as e:
                last_error = e
                continue

            log.status = IntegrationLogStatus.SUCCESS.value
            log.http_method = result.http_method
            log.endpoint = result.endpoint
            log.http_status_code = result.status_code
            log.request_summary = self._truncate(result.request_summary)
            log.response_summary = result.response_body
            log.retry_attempts = attempt
            self._finalize(log)
            logger.info(
                f"Connector {connector.id} {log.operation_type} succeeded "
                f"(attempt {attempt + 1}, {log.duration_ms}ms)"
            )
            return

        log.status = IntegrationLogStatus.FAILED.value
        log.retry_attempts = max_retries
        log.error_message = str(last_error)
        log.error_details = "".join(
            traceback.format_exception(type(last_error), last_error, last_error.__traceback__)
        )
        if isinstance(last_error, TransientExecutionError):
            log.http_status_code = last_error.status_code
            log.endpoint = last_error.context.get("endpoint")
        self._finalize(log)
        logger.error(
            f"Connector {connector.id} {log.operation_type} failed after "
            f"{max_retries + 1} attempts: {last_error}"
        )

    def _finalize(self, log: IntegrationLog) -> None:
        log.completed_at = self._clock.now()
        log.duration_ms = elapsed_ms(log.started_at, log.completed_at)

    def _truncate(self, text: Optional[str]) -> Optional[str]:
        limit = self._config.summary_max_chars
        if text is None or len(text) <= limit:
            return text
        return text[:limit]

    async def _persist(self, log: IntegrationLog) -> IntegrationLog:
        async with self._database.transaction() as session:
            await IntegrationLogRepository(session).add(log)
        return log

    # ----- QUERIES -----

    async def get_connector_logs(self, connector_id: int, limit: Optional[int] = None) -> List[IntegrationLog]:
        """Most recent logs for a connector, newest first."""
        async with self._database.transaction() as session:
            return await IntegrationLogRepository(session).list_by_connector(
                connector_id, limit or self._config.default_log_limit
            )

    async def get_logs_by_correlation_id(self, correlation_id: str) -> List[IntegrationLog]:
        async with self._database.transaction() as session:
            return await IntegrationLogRepository(session).list_by_correlation_id(correlation_id)

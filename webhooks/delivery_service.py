"""
Webhooks - Delivery Service.

============================================================
PURPOSE
============================================================
Fan a domain event out to every Active subscription, sign the
exact serialized body, persist one WebhookDelivery per
subscription and hand the ids to the DeliveryQueue. Dispatch
never waits on a subscriber.

============================================================
ATTEMPT OUTCOMES
============================================================
2xx:
    Succeeded, subscription failure counter reset to 0
interrupted (queue stopped mid-attempt):
    back to Retrying, due immediately
non-2xx or any exception from the POST:
    attempt_count > max_retry_attempts
        -> Failed, counter + 1 (atomic); an Active subscription
           reaching the threshold becomes Degraded
    otherwise
        -> Retrying, next_retry_at = now + delay(attempt_count)

With max_retry_attempts=3, base 5s, exponential: retries after
5s, 10s, 20s, then Failed on the 4th attempt.

============================================================
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import aiohttp
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import ClockProtocol, SystemClock
from core.config import WebhookConfig
from execution_engine.backoff import compute_retry_delay
from storage.database import Database
from storage.models.webhooks import (
    DeliveryStatus,
    SubscriptionStatus,
    WebhookDelivery,
    WebhookSubscription,
)
from storage.repositories.webhooks import DeliveryRepository, SubscriptionRepository
from webhooks.events import validate_event_type
from webhooks.http_sender import WebhookHttpSender, WebhookResponse
from webhooks.queue import DeliveryQueue, RetrySweeper
from webhooks.signature import WebhookSignatureService
from webhooks.state_machine import degrade


logger = logging.getLogger(__name__)


SIGNATURE_HEADER = "X-Webhook-Signature"
EVENT_HEADER = "X-Webhook-Event"
CORRELATION_HEADER = "X-Webhook-Correlation-Id"


def build_envelope(event_type: str, timestamp: str, correlation_id: str, data: Any) -> str:
    """Serialized {event, timestamp, correlationId, data}; this exact text is signed."""
    return json.dumps(
        {
            "event": event_type,
            "timestamp": timestamp,
            "correlationId": correlation_id,
            "data": data,
        },
        default=str,
    )


def build_headers(delivery: WebhookDelivery) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: delivery.signature,
        EVENT_HEADER: delivery.event_type,
        CORRELATION_HEADER: delivery.correlation_id,
    }


class WebhookDeliveryService:
    """Signed, retried, queue-backed webhook delivery."""

    def __init__(
        self,
        database: Database,
        sender: Optional[WebhookHttpSender] = None,
        signature_service: Optional[WebhookSignatureService] = None,
        config: Optional[WebhookConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._database = database
        self._sender = sender or WebhookHttpSender()
        self._signatures = signature_service or WebhookSignatureService()
        self._config = config or WebhookConfig()
        self._clock = clock or SystemClock()

        self.queue = DeliveryQueue(self.attempt_delivery, self._config.worker_count)
        self.sweeper = RetrySweeper(
            lambda: self.process_pending_retries(self._config.sweep_batch_size),
            self._config.sweep_interval_seconds,
        )

    # ----- LIFECYCLE -----

    async def start(self, with_sweeper: bool = True) -> None:
        await self.queue.start()
        if with_sweeper:
            await self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.queue.stop()
        await self._sender.close()

    # ============================================================
    # DISPATCH
    # ============================================================

    async def dispatch_event(
        self,
        event_type: str,
        data: Any,
        correlation_id: Optional[str] = None,
    ) -> List[WebhookDelivery]:
        """
        Create and enqueue one delivery per matching Active subscription.

        Returns:
            The persisted Pending deliveries (attempts happen on the queue)

        Raises:
            InvalidEventTypeError: Unknown event type
        """
        validate_event_type(event_type)
        correlation_id = correlation_id or str(uuid.uuid4())
        body = build_envelope(event_type, self._clock.format_iso(), correlation_id, data)

        deliveries: List[WebhookDelivery] = []
        async with self._database.transaction() as session:
            subscriptions = await SubscriptionRepository(session).list_active_for_event(event_type)
            repo = DeliveryRepository(session)
            for subscription in subscriptions:
                delivery = WebhookDelivery(
                    subscription_id=subscription.id,
                    event_type=event_type,
                    correlation_id=correlation_id,
                    payload=body,
                    signature=self._signatures.generate_signature(body, subscription.signing_secret),
                    status=DeliveryStatus.PENDING.value,
                    attempt_count=0,
                    created_at=self._clock.now(),
                )
                deliveries.append(await repo.add(delivery))

        for delivery in deliveries:
            self.queue.enqueue(delivery.id)

        logger.info(
            f"Dispatched {event_type} (correlation_id={correlation_id}) "
            f"to {len(deliveries)} subscriptions"
        )
        return deliveries

    # ============================================================
    # ATTEMPT
    # ============================================================

    async def attempt_delivery(self, delivery_id: int) -> bool:
        """
        Perform one delivery attempt.

        Returns:
            True iff the delivery is Succeeded after this call
        """
        now = self._clock.now()
        async with self._database.transaction() as session:
            repo = DeliveryRepository(session)
            claimed = await repo.claim(delivery_id, now)
            delivery = await repo.get(delivery_id)
            if delivery is None:
                logger.warning(f"Delivery {delivery_id} not found")
                return False
            if not claimed:
                logger.debug(f"Delivery {delivery_id} not claimable (status={delivery.status})")
                return delivery.status == DeliveryStatus.SUCCEEDED.value
            subscription = await SubscriptionRepository(session).get(delivery.subscription_id)

        if subscription is None:
            return await self._record_failure(delivery_id, None, "Subscription not found")

        try:
            response = await self._sender.post(subscription.endpoint_url, delivery.payload, build_headers(delivery))
        except asyncio.CancelledError:
            await asyncio.shield(self._release_claim(delivery_id))
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return await self._record_failure(delivery_id, None, f"{type(e).__name__}: {e}")
        except Exception as e:
            logger.exception(f"Delivery {delivery_id} attempt raised unexpectedly: {e}")
            return await self._record_failure(delivery_id, None, f"{type(e).__name__}: {e}")

        if response.is_success:
            return await self._record_success(delivery_id, response)
        return await self._record_failure(delivery_id, response, f"HTTP {response.status}: {response.reason}")

    async def _release_claim(self, delivery_id: int) -> None:
        async with self._database.transaction() as session:
            released = await DeliveryRepository(session).release_claim(delivery_id, self._clock.now())
        if released:
            logger.warning(f"Delivery {delivery_id} attempt interrupted; returned to Retrying")

    def _truncate(self, body: Optional[str]) -> Optional[str]:
        limit = self._config.response_body_max_chars
        if body is None or len(body) <= limit:
            return body
        return body[:limit]

    async def _record_success(self, delivery_id: int, response: WebhookResponse) -> bool:
        async with self._database.transaction() as session:
            deliveries = DeliveryRepository(session)
            delivery = await deliveries.get(delivery_id)
            delivery.status = DeliveryStatus.SUCCEEDED.value
            delivery.last_http_status_code = response.status
            delivery.last_response_body = self._truncate(response.body)
            delivery.last_error_message = None
            delivery.completed_at = self._clock.now()
            delivery.next_retry_at = None
            await deliveries.save()
            await SubscriptionRepository(session).reset_consecutive_failures(delivery.subscription_id)

        logger.info(
            f"Delivery {delivery_id} succeeded (HTTP {response.status}, attempt {delivery.attempt_count})"
        )
        return True

    async def _record_failure(
        self,
        delivery_id: int,
        response: Optional[WebhookResponse],
        error_message: str,
    ) -> bool:
        now = self._clock.now()
        async with self._database.transaction() as session:
            deliveries = DeliveryRepository(session)
            subscriptions = SubscriptionRepository(session)
            delivery = await deliveries.get(delivery_id)
            subscription = await subscriptions.get(delivery.subscription_id)

            delivery.last_error_message = error_message
            if response is not None:
                delivery.last_http_status_code = response.status
                delivery.last_response_body = self._truncate(response.body)

            if subscription is None or delivery.attempt_count > subscription.max_retry_attempts:
                delivery.status = DeliveryStatus.FAILED.value
                delivery.completed_at = now
                delivery.next_retry_at = None
                await deliveries.save()
                if subscription is not None:
                    await self._count_final_failure(session, subscription, now)
                logger.error(
                    f"Delivery {delivery_id} failed permanently after "
                    f"{delivery.attempt_count} attempts: {error_message}"
                )
                return False

            delay = compute_retry_delay(
                subscription.retry_delay_seconds,
                delivery.attempt_count,
                subscription.use_exponential_backoff,
            )
            delivery.status = DeliveryStatus.RETRYING.value
            delivery.next_retry_at = now + timedelta(seconds=delay)
            await deliveries.save()

        logger.warning(
            f"Delivery {delivery_id} attempt {delivery.attempt_count} failed: {error_message}. "
            f"Retrying in {delay:.0f}s"
        )
        return False

    async def _count_final_failure(
        self,
        session: AsyncSession,
        subscription: WebhookSubscription,
        now: datetime,
    ) -> None:
        repo = SubscriptionRepository(session)
        failures = await repo.increment_consecutive_failures(subscription.id)
        await session.refresh(subscription)

        if (
            subscription.status == SubscriptionStatus.ACTIVE.value
            and failures >= self._config.degradation_threshold
        ):
            degrade(subscription, f"Consecutive delivery failures: {failures}", now)
            await repo.save()

    # ============================================================
    # RETRIES AND QUERIES
    # ============================================================

    async def process_pending_retries(self, limit: int = 100) -> int:
        """
        Enqueue Retrying deliveries whose next_retry_at has elapsed.

        InProgress attempts older than stale_attempt_seconds (a worker
        crashed or was killed mid-attempt) are first returned to Retrying.
        """
        now = self._clock.now()
        stale_before = now - timedelta(seconds=self._config.stale_attempt_seconds)
        async with self._database.transaction() as session:
            repo = DeliveryRepository(session)
            reclaimed = await repo.reclaim_stale(stale_before, now)
            due = await repo.list_due_for_retry(now, limit)
        if reclaimed:
            logger.warning(f"Reclaimed {reclaimed} stale in-progress deliveries")
        for delivery in due:
            self.queue.enqueue(delivery.id)
        return len(due)

    async def get_delivery_history(self, subscription_id: int, limit: int = 100) -> List[WebhookDelivery]:
        async with self._database.transaction() as session:
            return await DeliveryRepository(session).list_for_subscription(subscription_id, limit)

    async def get_failed_deliveries(self, limit: int = 100) -> List[WebhookDelivery]:
        async with self._database.transaction() as session:
            return await DeliveryRepository(session).list_failed(limit)

"""
Webhook Repositories.

============================================================
ATOMIC COUNTERS
============================================================
consecutive_failures is changed only through single UPDATE
statements (n = n + 1, n = 0) so that concurrent workers
delivering to the same subscription cannot lose increments.

A delivery is claimed with one conditional UPDATE, so a delivery
enqueued twice is attempted once. An interrupted or abandoned claim
goes back to Retrying through the same kind of statement.

============================================================
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.webhooks import (
    DeliveryStatus,
    SubscriptionStatus,
    WebhookDelivery,
    WebhookSubscription,
)
from storage.repositories.base import BaseRepository


class SubscriptionRepository(BaseRepository[WebhookSubscription]):
    """Webhook subscription store."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WebhookSubscription, "SubscriptionRepository")

    async def add(self, subscription: WebhookSubscription) -> WebhookSubscription:
        return await self._add(subscription)

    async def get(self, subscription_id: int) -> Optional[WebhookSubscription]:
        return await self._get_by_id(subscription_id)

    async def list_all(self) -> List[WebhookSubscription]:
        stmt = select(WebhookSubscription).order_by(WebhookSubscription.id)
        return await self._execute_query(stmt, "list_all")

    async def list_active_for_event(self, event_type: str) -> List[WebhookSubscription]:
        """Active subscriptions whose event set contains event_type."""
        stmt = (
            select(WebhookSubscription)
            .where(WebhookSubscription.status == SubscriptionStatus.ACTIVE.value)
            .order_by(WebhookSubscription.id)
        )
        candidates = await self._execute_query(stmt, "list_active_for_event")
        # Comma-joined column; exact membership is checked in Python
        return [s for s in candidates if s.is_subscribed_to(event_type)]

    async def delete(self, subscription_id: int) -> bool:
        result = await self._execute(
            delete(WebhookSubscription).where(WebhookSubscription.id == subscription_id),
            "delete",
        )
        return (result.rowcount or 0) > 0

    async def save(self) -> None:
        await self._flush("save")

    async def increment_consecutive_failures(self, subscription_id: int) -> int:
        """Atomically add one to the failure counter and return the new value."""
        stmt = (
            update(WebhookSubscription)
            .where(WebhookSubscription.id == subscription_id)
            .values(consecutive_failures=WebhookSubscription.consecutive_failures + 1)
            .returning(WebhookSubscription.consecutive_failures)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, "increment_consecutive_failures")
        return result.scalar_one()

    async def reset_consecutive_failures(self, subscription_id: int) -> None:
        stmt = (
            update(WebhookSubscription)
            .where(WebhookSubscription.id == subscription_id)
            .values(consecutive_failures=0)
            .execution_options(synchronize_session=False)
        )
        await self._execute(stmt, "reset_consecutive_failures")


class DeliveryRepository(BaseRepository[WebhookDelivery]):
    """Webhook delivery store."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, WebhookDelivery, "DeliveryRepository")

    async def add(self, delivery: WebhookDelivery) -> WebhookDelivery:
        return await self._add(delivery)

    async def get(self, delivery_id: int) -> Optional[WebhookDelivery]:
        return await self._get_by_id(delivery_id)

    async def save(self) -> None:
        await self._flush("save")

    async def list_for_subscription(self, subscription_id: int, limit: int = 100) -> List[WebhookDelivery]:
        stmt = (
            select(WebhookDelivery)
            .where(WebhookDelivery.subscription_id == subscription_id)
            .order_by(desc(WebhookDelivery.created_at), desc(WebhookDelivery.id))
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_for_subscription")

    async def list_failed(self, limit: int = 100) -> List[WebhookDelivery]:
        stmt = (
            select(WebhookDelivery)
            .where(WebhookDelivery.status == DeliveryStatus.FAILED.value)
            .order_by(desc(WebhookDelivery.completed_at), desc(WebhookDelivery.id))
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_failed")

    async def list_due_for_retry(self, now: datetime, limit: int = 100) -> List[WebhookDelivery]:
        """Retrying deliveries whose next_retry_at has elapsed, oldest first."""
        stmt = (
            select(WebhookDelivery)
            .where(
                WebhookDelivery.status == DeliveryStatus.RETRYING.value,
                WebhookDelivery.next_retry_at.is_not(None),
                WebhookDelivery.next_retry_at <= now,
            )
            .order_by(WebhookDelivery.next_retry_at, WebhookDelivery.id)
            .limit(limit)
        )
        return await self._execute_query(stmt, "list_due_for_retry")

    async def claim(self, delivery_id: int, now: datetime) -> bool:
        """
        Pending/Retrying -> InProgress with attempt_count + 1, atomically.

        False when another worker already owns the delivery or it is final.
        """
        stmt = (
            update(WebhookDelivery)
            .where(
                WebhookDelivery.id == delivery_id,
                WebhookDelivery.status.in_([DeliveryStatus.PENDING.value, DeliveryStatus.RETRYING.value]),
            )
            .values(
                status=DeliveryStatus.IN_PROGRESS.value,
                attempt_count=WebhookDelivery.attempt_count + 1,
                last_attempt_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, "claim")
        return (result.rowcount or 0) == 1

    async def release_claim(self, delivery_id: int, now: datetime) -> bool:
        """InProgress -> Retrying, due now. The interrupted attempt stays counted."""
        stmt = (
            update(WebhookDelivery)
            .where(
                WebhookDelivery.id == delivery_id,
                WebhookDelivery.status == DeliveryStatus.IN_PROGRESS.value,
            )
            .values(status=DeliveryStatus.RETRYING.value, next_retry_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, "release_claim")
        return (result.rowcount or 0) == 1

    async def reclaim_stale(self, started_before: datetime, now: datetime) -> int:
        """Return InProgress attempts started at or before started_before to Retrying, due now."""
        stmt = (
            update(WebhookDelivery)
            .where(
                WebhookDelivery.status == DeliveryStatus.IN_PROGRESS.value,
                WebhookDelivery.last_attempt_at <= started_before,
            )
            .values(status=DeliveryStatus.RETRYING.value, next_retry_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, "reclaim_stale")
        return result.rowcount or 0

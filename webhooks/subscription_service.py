"""
Webhooks - Subscription Service.

============================================================
PURPOSE
============================================================
Subscription lifecycle: create (with background verification
handshake), update, activate, pause, degrade, rotate secret,
delete.

HANDSHAKE:
    POST {"type": "webhook.verification", "token": ..., "timestamp": ...}
    2xx AND body contains the token verbatim -> Active
    anything else -> stays PendingVerification (no automatic retry)

============================================================
"""

import asyncio
import json
import logging
from typing import Iterable, List, Optional, Set

import aiohttp

from core.clock import ClockProtocol, SystemClock
from core.exceptions import SubscriptionNotFoundError
from storage.database import Database
from storage.models.webhooks import SubscriptionStatus, WebhookSubscription
from storage.repositories.webhooks import SubscriptionRepository
from webhooks.events import validate_event_type, validate_event_types
from webhooks.http_sender import WebhookHttpSender
from webhooks.signature import WebhookSignatureService
from webhooks.state_machine import degrade, transition


logger = logging.getLogger(__name__)


VERIFICATION_TYPE = "webhook.verification"


class WebhookSubscriptionService:
    """Manages webhook subscriptions."""

    def __init__(
        self,
        database: Database,
        sender: Optional[WebhookHttpSender] = None,
        signature_service: Optional[WebhookSignatureService] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._database = database
        self._sender = sender or WebhookHttpSender()
        self._signatures = signature_service or WebhookSignatureService()
        self._clock = clock or SystemClock()
        self._background: Set[asyncio.Task] = set()

    # ============================================================
    # CREATION AND VERIFICATION
    # ============================================================

    async def create_subscription(
        self,
        name: str,
        endpoint_url: str,
        subscribed_events: Iterable[str],
        created_by: str,
        max_retry_attempts: int = 3,
        retry_delay_seconds: int = 5,
        use_exponential_backoff: bool = True,
        description: Optional[str] = None,
    ) -> WebhookSubscription:
        """
        Create a PendingVerification subscription.

        The verification handshake is scheduled in the background;
        creation does not wait for it.

        Raises:
            InvalidEventTypeError: Any event outside the closed set
        """
        events = validate_event_types(subscribed_events)

        subscription = WebhookSubscription(
            name=name,
            endpoint_url=endpoint_url,
            subscribed_events=",".join(events),
            status=SubscriptionStatus.PENDING_VERIFICATION.value,
            signing_secret=self._signatures.generate_signing_secret(),
            verification_token=self._signatures.generate_verification_token(),
            max_retry_attempts=max_retry_attempts,
            retry_delay_seconds=retry_delay_seconds,
            use_exponential_backoff=use_exponential_backoff,
            consecutive_failures=0,
            description=description,
            created_by=created_by,
            created_at=self._clock.now(),
        )
        async with self._database.transaction() as session:
            await SubscriptionRepository(session).add(subscription)

        logger.info(f"Subscription created: {subscription.id} {name!r} -> {endpoint_url} ({', '.join(events)})")

        task = asyncio.create_task(self.perform_verification_handshake(subscription.id))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return subscription

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Verification handshake task failed: {task.exception()!r}")

    async def wait_for_background_tasks(self) -> None:
        """Await pending handshakes (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def perform_verification_handshake(self, subscription_id: int) -> bool:
        """
        Challenge the endpoint with the verification token.

        Returns:
            True iff the subscription became Active
        """
        async with self._database.transaction() as session:
            subscription = await SubscriptionRepository(session).get(subscription_id)
        if subscription is None:
            return False

        body = json.dumps({
            "type": VERIFICATION_TYPE,
            "token": subscription.verification_token,
            "timestamp": self._clock.format_iso(),
        })

        try:
            response = await self._sender.post(
                subscription.endpoint_url,
                body,
                {"Content-Type": "application/json"},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Verification of subscription {subscription_id} failed: {type(e).__name__}: {e}")
            return False

        if not response.is_success or subscription.verification_token not in response.body:
            logger.warning(
                f"Verification of subscription {subscription_id} rejected "
                f"(HTTP {response.status}, token echoed: {subscription.verification_token in response.body})"
            )
            return False

        async with self._database.transaction() as session:
            repo = SubscriptionRepository(session)
            subscription = await repo.get(subscription_id)
            if subscription is None:
                return False
            transition(subscription, SubscriptionStatus.ACTIVE)
            subscription.verified_at = self._clock.now()
            await repo.save()

        logger.info(f"Subscription {subscription_id} verified")
        return True

    # ============================================================
    # QUERIES
    # ============================================================

    async def get_subscription(self, subscription_id: int) -> Optional[WebhookSubscription]:
        async with self._database.transaction() as session:
            return await SubscriptionRepository(session).get(subscription_id)

    async def list_subscriptions(self) -> List[WebhookSubscription]:
        async with self._database.transaction() as session:
            return await SubscriptionRepository(session).list_all()

    async def get_active_subscriptions_for_event(self, event_type: str) -> List[WebhookSubscription]:
        validate_event_type(event_type)
        async with self._database.transaction() as session:
            return await SubscriptionRepository(session).list_active_for_event(event_type)

    # ============================================================
    # MUTATIONS
    # ============================================================

    async def update_subscription(
        self,
        subscription_id: int,
        name: str,
        endpoint_url: str,
        subscribed_events: Iterable[str],
        updated_by: str,
        max_retry_attempts: int = 3,
        retry_delay_seconds: int = 5,
        use_exponential_backoff: bool = True,
        description: Optional[str] = None,
    ) -> WebhookSubscription:
        events = validate_event_types(subscribed_events)

        async with self._database.transaction() as session:
            repo = SubscriptionRepository(session)
            subscription = await self._get_or_raise(repo, subscription_id)
            subscription.name = name
            subscription.endpoint_url = endpoint_url
            subscription.subscribed_events = ",".join(events)
            subscription.max_retry_attempts = max_retry_attempts
            subscription.retry_delay_seconds = retry_delay_seconds
            subscription.use_exponential_backoff = use_exponential_backoff
            subscription.description = description
            subscription.updated_by = updated_by
            subscription.updated_at = self._clock.now()
            await repo.save()
        return subscription

    async def activate_subscription(self, subscription_id: int, updated_by: str) -> WebhookSubscription:
        """Paused/Degraded -> Active; clears the failure counter and degradation."""
        async with self._database.transaction() as session:
            repo = SubscriptionRepository(session)
            subscription = await self._get_or_raise(repo, subscription_id)
            transition(subscription, SubscriptionStatus.ACTIVE)
            subscription.degraded_at = None
            subscription.degraded_reason = None
            subscription.updated_by = updated_by
            subscription.updated_at = self._clock.now()
            await repo.save()
            await repo.reset_consecutive_failures(subscription_id)
            subscription.consecutive_failures = 0

        logger.info(f"Subscription {subscription_id} activated by {updated_by}")
        return subscription

    async def pause_subscription(self, subscription_id: int, updated_by: str) -> WebhookSubscription:
        async with self._database.transaction() as session:
            repo = SubscriptionRepository(session)
            subscription = await self._get_or_raise(repo, subscription_id)
            transition(subscription, SubscriptionStatus.PAUSED)
            subscription.updated_by = updated_by
            subscription.updated_at = self._clock.now()
            await repo.save()

        logger.info(f"Subscription {subscription_id} paused by {updated_by}")
        return subscription

    async def rotate_signing_secret(self, subscription_id: int, updated_by: str) -> WebhookSubscription:
        """New secret for future deliveries. Status and history are untouched."""
        async with self._database.transaction() as session:
            repo = SubscriptionRepository(session)
            subscription = await self._get_or_raise(repo, subscription_id)
            now = self._clock.now()
            subscription.signing_secret = self._signatures.generate_signing_secret()
            subscription.secret_rotated_at = now
            subscription.updated_by = updated_by
            subscription.updated_at = now
            await repo.save()

        logger.info(f"Signing secret rotated for subscription {subscription_id} by {updated_by}")
        return subscription

    async def mark_as_degraded(self, subscription_id: int, reason: str) -> WebhookSubscription:
        async with self._database.transaction() as session:
            repo = SubscriptionRepository(session)
            subscription = await self._get_or_raise(repo, subscription_id)
            degrade(subscription, reason, self._clock.now())
            await repo.save()
        return subscription

    async def delete_subscription(self, subscription_id: int) -> bool:
        async with self._database.transaction() as session:
            deleted = await SubscriptionRepository(session).delete(subscription_id)
        if deleted:
            logger.info(f"Subscription {subscription_id} deleted")
        return deleted

    async def close(self) -> None:
        await self.wait_for_background_tasks()
        await self._sender.close()

    @staticmethod
    async def _get_or_raise(repo: SubscriptionRepository, subscription_id: int) -> WebhookSubscription:
        subscription = await repo.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return subscription

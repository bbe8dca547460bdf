"""
Tests for WebhookSubscriptionService.

============================================================
PURPOSE
============================================================
- Verification handshake against a live aiohttp endpoint
- Lifecycle transitions, secret rotation, deletion

============================================================
"""

import json
from unittest.mock import AsyncMock

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.exceptions import (
    InvalidEventTypeError,
    InvalidStateTransitionError,
    SubscriptionNotFoundError,
)
from storage.models.webhooks import SubscriptionStatus
from webhooks import WebhookHttpSender, WebhookResponse, WebhookSubscriptionService
from webhooks.subscription_service import VERIFICATION_TYPE


def echo_sender() -> AsyncMock:
    """Sender whose endpoint echoes the request body (passes verification)."""
    sender = AsyncMock(spec=WebhookHttpSender)
    sender.post.side_effect = lambda url, body, headers: WebhookResponse(200, "OK", body)
    return sender


@pytest.fixture
def service(database, clock):
    return WebhookSubscriptionService(database, sender=echo_sender(), clock=clock)


async def active_subscription(service, events=("data.changed",)):
    subscription = await service.create_subscription("ERP", "http://hooks.test/in", list(events), "admin")
    await service.wait_for_background_tasks()
    return await service.get_subscription(subscription.id)


@pytest.mark.asyncio
class TestVerificationHandshake:

    async def test_endpoint_echoing_token_activates(self, database, clock):
        received = []

        async def hook(request):
            payload = await request.json()
            received.append(payload)
            return web.json_response({"token": payload["token"]})

        app = web.Application()
        app.router.add_post("/hook", hook)

        async with TestServer(app) as server:
            service = WebhookSubscriptionService(database, clock=clock)
            created = await service.create_subscription(
                "ERP", str(server.make_url("/hook")), ["data.changed"], "admin"
            )
            assert created.status == SubscriptionStatus.PENDING_VERIFICATION.value
            await service.close()

        subscription = await service.get_subscription(created.id)
        assert subscription.status == SubscriptionStatus.ACTIVE.value
        assert subscription.verified_at == clock.now()
        assert received[0]["type"] == VERIFICATION_TYPE
        assert received[0]["token"] == created.verification_token

    async def test_endpoint_without_token_stays_pending(self, database, clock):
        async def hook(request):
            return web.Response(text="ok")

        app = web.Application()
        app.router.add_post("/hook", hook)

        async with TestServer(app) as server:
            service = WebhookSubscriptionService(database, clock=clock)
            created = await service.create_subscription(
                "ERP", str(server.make_url("/hook")), ["data.changed"], "admin"
            )
            await service.close()

        subscription = await service.get_subscription(created.id)
        assert subscription.status == SubscriptionStatus.PENDING_VERIFICATION.value
        assert subscription.verified_at is None

    async def test_transport_error_stays_pending(self, database, clock):
        sender = AsyncMock(spec=WebhookHttpSender)
        sender.post.side_effect = aiohttp.ClientConnectionError("refused")
        service = WebhookSubscriptionService(database, sender=sender, clock=clock)

        created = await service.create_subscription("ERP", "http://hooks.test/in", ["data.changed"], "admin")
        await service.wait_for_background_tasks()

        subscription = await service.get_subscription(created.id)
        assert subscription.status == SubscriptionStatus.PENDING_VERIFICATION.value


@pytest.mark.asyncio
class TestLifecycle:

    async def test_create_validates_events(self, service):
        with pytest.raises(InvalidEventTypeError):
            await service.create_subscription("ERP", "http://hooks.test/in", ["data.exploded"], "admin")

    async def test_create_fields(self, service):
        subscription = await active_subscription(service, ["data.changed", "export.failed", "data.changed"])

        assert subscription.event_list == ["data.changed", "export.failed"]
        assert subscription.signing_secret
        assert subscription.consecutive_failures == 0
        assert subscription.max_retry_attempts == 3

    async def test_pause_and_activate(self, service):
        subscription = await active_subscription(service)

        paused = await service.pause_subscription(subscription.id, "ops")
        assert paused.status == SubscriptionStatus.PAUSED.value
        assert await service.get_active_subscriptions_for_event("data.changed") == []

        active = await service.activate_subscription(subscription.id, "ops")
        assert active.status == SubscriptionStatus.ACTIVE.value
        assert [s.id for s in await service.get_active_subscriptions_for_event("data.changed")] == [subscription.id]
        assert await service.get_active_subscriptions_for_event("export.started") == []

    async def test_degraded_reactivation_clears_state(self, service):
        subscription = await active_subscription(service)
        degraded = await service.mark_as_degraded(subscription.id, "manual")
        assert degraded.degraded_reason == "manual"

        active = await service.activate_subscription(subscription.id, "ops")

        reloaded = await service.get_subscription(active.id)
        assert reloaded.status == SubscriptionStatus.ACTIVE.value
        assert reloaded.degraded_at is None
        assert reloaded.degraded_reason is None
        assert reloaded.consecutive_failures == 0

    async def test_pending_cannot_be_paused(self, database, clock):
        sender = AsyncMock(spec=WebhookHttpSender)
        sender.post.return_value = WebhookResponse(404, "Not Found", "")
        service = WebhookSubscriptionService(database, sender=sender, clock=clock)
        created = await service.create_subscription("ERP", "http://hooks.test/in", ["data.changed"], "admin")
        await service.wait_for_background_tasks()

        with pytest.raises(InvalidStateTransitionError):
            await service.pause_subscription(created.id, "ops")

    async def test_rotate_secret(self, service, clock):
        subscription = await active_subscription(service)
        clock.advance(seconds=60)

        rotated = await service.rotate_signing_secret(subscription.id, "ops")

        assert rotated.signing_secret != subscription.signing_secret
        assert rotated.secret_rotated_at == clock.now()
        assert rotated.status == SubscriptionStatus.ACTIVE.value

    async def test_update(self, service):
        subscription = await active_subscription(service)

        updated = await service.update_subscription(
            subscription.id, "ERP v2", "http://hooks.test/v2", ["export.completed"], "ops", max_retry_attempts=5
        )

        assert updated.name == "ERP v2"
        assert updated.event_list == ["export.completed"]
        assert updated.max_retry_attempts == 5
        assert updated.status == SubscriptionStatus.ACTIVE.value

    async def test_delete(self, service):
        subscription = await active_subscription(service)

        assert await service.delete_subscription(subscription.id) is True
        assert await service.delete_subscription(subscription.id) is False
        assert await service.list_subscriptions() == []

    async def test_unknown_subscription(self, service):
        with pytest.raises(SubscriptionNotFoundError):
            await service.pause_subscription(404, "ops")

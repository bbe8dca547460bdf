"""
Webhook Subsystem Package.

============================================================
PURPOSE
============================================================
Outbound event notifications to verified subscribers:
- Subscription lifecycle and verification handshake
- HMAC-SHA256 signed deliveries
- Queue-backed attempts with retry, backoff and degradation

CRITICAL PRINCIPLE:
    "Raising an event never waits on a subscriber."

============================================================
"""

from webhooks.delivery_service import (
    CORRELATION_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    WebhookDeliveryService,
    build_envelope,
)
from webhooks.events import ALL_EVENT_TYPES, WebhookEventType, validate_event_type
from webhooks.http_sender import WebhookHttpSender, WebhookResponse
from webhooks.queue import DeliveryQueue, RetrySweeper
from webhooks.signature import WebhookSignatureService
from webhooks.state_machine import SUBSCRIPTION_TRANSITIONS, can_transition, transition
from webhooks.subscription_service import VERIFICATION_TYPE, WebhookSubscriptionService


__all__ = [
    # Events
    "ALL_EVENT_TYPES",
    "WebhookEventType",
    "validate_event_type",
    # State machine
    "SUBSCRIPTION_TRANSITIONS",
    "can_transition",
    "transition",
    # Services
    "WebhookDeliveryService",
    "WebhookSignatureService",
    "WebhookSubscriptionService",
    "VERIFICATION_TYPE",
    # Transport
    "DeliveryQueue",
    "RetrySweeper",
    "WebhookHttpSender",
    "WebhookResponse",
    "build_envelope",
    "CORRELATION_HEADER",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
]

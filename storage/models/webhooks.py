"""
Webhook Domain ORM Models.

============================================================
PURPOSE
============================================================
Outbound event subscriptions and one delivery row per
(subscription, event).

============================================================
DATA LIFECYCLE ROLE
============================================================
- WebhookSubscription: MUTABLE, lifecycle driven by state machine
- WebhookDelivery: updated in place by its single owner (the
  worker processing it)

============================================================
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import AuditMixin, Base, utc_now


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle."""
    PENDING_VERIFICATION = "PendingVerification"
    ACTIVE = "Active"
    PAUSED = "Paused"
    DEGRADED = "Degraded"


class DeliveryStatus(str, Enum):
    """Delivery lifecycle."""
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    RETRYING = "Retrying"


TERMINAL_DELIVERY_STATUSES = frozenset({DeliveryStatus.SUCCEEDED, DeliveryStatus.FAILED})


class WebhookSubscription(Base, AuditMixin):
    """Outbound event subscription."""

    __tablename__ = "webhook_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    endpoint_url: Mapped[str] = mapped_column(String(500), nullable=False)

    subscribed_events: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Comma separated event types"
    )

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=SubscriptionStatus.PENDING_VERIFICATION.value
    )

    signing_secret: Mapped[str] = mapped_column(String(200), nullable=False)
    secret_rotated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    verification_token: Mapped[str] = mapped_column(String(200), nullable=False)
    verified_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    # Retry policy
    max_retry_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retry_delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    use_exponential_backoff: Mapped[bool] = mapped_column(nullable=False, default=True)

    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    degraded_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    degraded_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def event_list(self) -> List[str]:
        return [e.strip() for e in (self.subscribed_events or "").split(",") if e.strip()]

    def is_subscribed_to(self, event_type: str) -> bool:
        return event_type in self.event_list

    def __repr__(self) -> str:
        return f"<WebhookSubscription(id={self.id}, name={self.name!r}, status={self.status})>"


class WebhookDelivery(Base):
    """One event instance targeted at one subscription."""

    __tablename__ = "webhook_deliveries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    subscription_id: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(100), nullable=False)

    payload: Mapped[str] = mapped_column(Text, nullable=False, comment="Exact serialized body that was signed")
    signature: Mapped[str] = mapped_column(String(128), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DeliveryStatus.PENDING.value)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_http_status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_response_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    last_attempt_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    next_retry_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_webhook_deliveries_subscription_created", "subscription_id", "created_at"),
        Index("ix_webhook_deliveries_retry", "status", "next_retry_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookDelivery(id={self.id}, sub={self.subscription_id}, "
            f"event={self.event_type}, status={self.status}, attempts={self.attempt_count})>"
        )

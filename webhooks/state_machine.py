"""
Webhooks - Subscription State Machine.

============================================================
STATE MACHINE
============================================================

    PendingVerification
           |  (handshake succeeds)
           v
        Active  <----------->  Paused
           |                     ^
           | (>= threshold       | no edge
           |  failures)          |
           v                     |
        Degraded  --(operator activates)--> Active

INVARIANTS:
- Degraded is left only by explicit reactivation
- Same-state transitions are no-ops
- Invalid transitions raise InvalidStateTransitionError

============================================================
"""

import logging
from datetime import datetime
from typing import Dict, Set, Tuple

from core.exceptions import InvalidStateTransitionError
from storage.models.webhooks import SubscriptionStatus, WebhookSubscription


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

SUBSCRIPTION_TRANSITIONS: Dict[SubscriptionStatus, Set[SubscriptionStatus]] = {
    SubscriptionStatus.PENDING_VERIFICATION: {
        SubscriptionStatus.ACTIVE,
    },
    SubscriptionStatus.ACTIVE: {
        SubscriptionStatus.PAUSED,
        SubscriptionStatus.DEGRADED,
    },
    SubscriptionStatus.PAUSED: {
        SubscriptionStatus.ACTIVE,
    },
    SubscriptionStatus.DEGRADED: {
        SubscriptionStatus.ACTIVE,
    },
}


def can_transition(from_status: SubscriptionStatus, to_status: SubscriptionStatus) -> Tuple[bool, str]:
    """
    Check if a transition is allowed.

    Returns:
        Tuple of (allowed, reason)
    """
    if from_status == to_status:
        return True, "Same state"
    if to_status in SUBSCRIPTION_TRANSITIONS.get(from_status, set()):
        return True, "Valid transition"
    return False, f"Invalid transition: {from_status.value} -> {to_status.value}"


def transition(subscription: WebhookSubscription, to_status: SubscriptionStatus) -> None:
    """Move a subscription to to_status or raise."""
    from_status = SubscriptionStatus(subscription.status)
    allowed, reason = can_transition(from_status, to_status)
    if not allowed:
        raise InvalidStateTransitionError("WebhookSubscription", from_status.value, to_status.value)

    if from_status != to_status:
        subscription.status = to_status.value
        logger.info(f"Subscription {subscription.id}: {from_status.value} -> {to_status.value}")


def degrade(subscription: WebhookSubscription, reason: str, now: datetime) -> None:
    """Active -> Degraded with the degradation fields stamped."""
    transition(subscription, SubscriptionStatus.DEGRADED)
    subscription.degraded_at = now
    subscription.degraded_reason = reason
    subscription.updated_at = now
    logger.warning(f"Subscription {subscription.id} degraded: {reason}")

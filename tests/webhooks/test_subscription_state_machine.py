"""
Tests for the subscription state machine.
"""

from datetime import datetime, timezone

import pytest

from core.exceptions import InvalidStateTransitionError
from storage.models.webhooks import SubscriptionStatus, WebhookSubscription
from webhooks.state_machine import can_transition, degrade, transition


S = SubscriptionStatus


def subscription(status: SubscriptionStatus) -> WebhookSubscription:
    return WebhookSubscription(id=1, name="erp", status=status.value)


class TestCanTransition:

    @pytest.mark.parametrize("from_status,to_status", [
        (S.PENDING_VERIFICATION, S.ACTIVE),
        (S.ACTIVE, S.PAUSED),
        (S.ACTIVE, S.DEGRADED),
        (S.PAUSED, S.ACTIVE),
        (S.DEGRADED, S.ACTIVE),
    ])
    def test_allowed(self, from_status, to_status):
        allowed, _ = can_transition(from_status, to_status)
        assert allowed

    @pytest.mark.parametrize("from_status,to_status", [
        (S.PENDING_VERIFICATION, S.PAUSED),
        (S.PENDING_VERIFICATION, S.DEGRADED),
        (S.PAUSED, S.DEGRADED),
        (S.DEGRADED, S.PAUSED),
        (S.ACTIVE, S.PENDING_VERIFICATION),
    ])
    def test_rejected(self, from_status, to_status):
        allowed, reason = can_transition(from_status, to_status)
        assert not allowed
        assert from_status.value in reason

    def test_same_state(self):
        assert can_transition(S.PAUSED, S.PAUSED) == (True, "Same state")


class TestTransition:

    def test_applies_status(self):
        sub = subscription(S.ACTIVE)
        transition(sub, S.PAUSED)
        assert sub.status == "Paused"

    def test_invalid_raises(self):
        sub = subscription(S.PAUSED)
        with pytest.raises(InvalidStateTransitionError):
            transition(sub, S.DEGRADED)
        assert sub.status == "Paused"

    def test_degrade_stamps_fields(self):
        now = datetime(2026, 3, 1, tzinfo=timezone.utc)
        sub = subscription(S.ACTIVE)

        degrade(sub, "Consecutive delivery failures: 5", now)

        assert sub.status == "Degraded"
        assert sub.degraded_at == now
        assert sub.degraded_reason == "Consecutive delivery failures: 5"

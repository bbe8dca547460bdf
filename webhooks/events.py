"""
Webhooks - Event Types.

Closed set of events a subscription may subscribe to.
"""

from enum import Enum
from typing import FrozenSet, Iterable, List

from core.exceptions import InvalidEventTypeError


class WebhookEventType(str, Enum):
    DATA_CHANGED = "data.changed"
    APPROVAL_REQUESTED = "approval.requested"
    APPROVAL_GRANTED = "approval.granted"
    APPROVAL_REJECTED = "approval.rejected"
    EXPORT_STARTED = "export.started"
    EXPORT_COMPLETED = "export.completed"
    EXPORT_FAILED = "export.failed"


ALL_EVENT_TYPES: FrozenSet[str] = frozenset(e.value for e in WebhookEventType)


def validate_event_type(event_type: str) -> str:
    """
    Raises:
        InvalidEventTypeError: event_type outside the closed set
    """
    if event_type not in ALL_EVENT_TYPES:
        raise InvalidEventTypeError(event_type)
    return event_type


def validate_event_types(event_types: Iterable[str]) -> List[str]:
    """Validate every requested event; order preserved, duplicates dropped."""
    validated: List[str] = []
    for event_type in event_types:
        validate_event_type(event_type)
        if event_type not in validated:
            validated.append(event_type)
    return validated

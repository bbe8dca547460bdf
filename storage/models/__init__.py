"""
Storage Models Package.

ORM models for the integration engine, organized by domain.

============================================================
MODEL ORGANIZATION
============================================================

Domain 1: Connectors (connectors.py)
- Connector
- IntegrationLog
- IntegrationJobMetadata

Domain 2: Canonical Data Model (canonical.py)
- CanonicalEntityVersion
- CanonicalAttribute
- CanonicalMapping
- CanonicalEntity

Domain 3: Staging (staging.py)
- HREntity, HRSyncRecord
- FinanceEntity, FinanceSyncRecord

Domain 4: Webhooks (webhooks.py)
- WebhookSubscription
- WebhookDelivery

============================================================
DESIGN PRINCIPLES
============================================================

- Explicit column definitions
- Timezone-aware timestamps on every backend
- Enums stored as strings
- Rows reference each other by id; no ORM relationships

============================================================
"""

from storage.models.base import Base, AuditMixin, JsonColumn, UTCDateTime, utc_now

from storage.models.connectors import (
    ConnectorStatus,
    ConnectorType,
    IntegrationLogStatus,
    JobStatus,
    TERMINAL_JOB_STATUSES,
    Connector,
    IntegrationLog,
    IntegrationJobMetadata,
)

from storage.models.canonical import (
    CanonicalEntityType,
    CanonicalEntityVersion,
    CanonicalAttribute,
    CanonicalMapping,
    CanonicalEntity,
)

from storage.models.staging import (
    SyncRecordStatus,
    ConflictResolution,
    HREntity,
    HRSyncRecord,
    FinanceEntity,
    FinanceSyncRecord,
)

from storage.models.webhooks import (
    SubscriptionStatus,
    DeliveryStatus,
    TERMINAL_DELIVERY_STATUSES,
    WebhookSubscription,
    WebhookDelivery,
)

__all__ = [
    # Base
    "Base",
    "AuditMixin",
    "JsonColumn",
    "UTCDateTime",
    "utc_now",
    # Connectors
    "ConnectorStatus",
    "ConnectorType",
    "IntegrationLogStatus",
    "JobStatus",
    "TERMINAL_JOB_STATUSES",
    "Connector",
    "IntegrationLog",
    "IntegrationJobMetadata",
    # Canonical
    "CanonicalEntityType",
    "CanonicalEntityVersion",
    "CanonicalAttribute",
    "CanonicalMapping",
    "CanonicalEntity",
    # Staging
    "SyncRecordStatus",
    "ConflictResolution",
    "HREntity",
    "HRSyncRecord",
    "FinanceEntity",
    "FinanceSyncRecord",
    # Webhooks
    "SubscriptionStatus",
    "DeliveryStatus",
    "TERMINAL_DELIVERY_STATUSES",
    "WebhookSubscription",
    "WebhookDelivery",
]

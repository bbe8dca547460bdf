"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The Repository Layer is the ONLY gateway to persistent storage.

============================================================
ARCHITECTURE PRINCIPLES
============================================================
1. One repository per aggregate
2. Session Injection: AsyncSession comes from the caller's
   transaction scope; repositories flush, never commit
3. Explicit Methods: clear method names, no generic execute
4. Append-only history: sync records and integration logs have
   no update methods
5. Exception Handling: all DB errors wrapped in repository exceptions

============================================================
USAGE
============================================================

    async with database.transaction() as session:
        connectors = ConnectorRepository(session)
        connector = await connectors.get(connector_id)

============================================================
"""

from storage.repositories.exceptions import (
    RepositoryException,
    RecordNotFoundError,
    DuplicateRecordError,
    DatabaseConnectionError,
    QueryError,
)

from storage.repositories.base import BaseRepository

from storage.repositories.connectors import (
    ConnectorRepository,
    IntegrationLogRepository,
    JobMetadataRepository,
)

from storage.repositories.canonical import (
    SchemaVersionRepository,
    AttributeRepository,
    MappingRepository,
    CanonicalEntityRepository,
)

from storage.repositories.staging import (
    HREntityRepository,
    HRSyncRecordRepository,
    FinanceEntityRepository,
    FinanceSyncRecordRepository,
)

from storage.repositories.webhooks import (
    SubscriptionRepository,
    DeliveryRepository,
)


__all__ = [
    # Exceptions
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "DatabaseConnectionError",
    "QueryError",
    # Base
    "BaseRepository",
    # Connectors
    "ConnectorRepository",
    "IntegrationLogRepository",
    "JobMetadataRepository",
    # Canonical
    "SchemaVersionRepository",
    "AttributeRepository",
    "MappingRepository",
    "CanonicalEntityRepository",
    # Staging
    "HREntityRepository",
    "HRSyncRecordRepository",
    "FinanceEntityRepository",
    "FinanceSyncRecordRepository",
    # Webhooks
    "SubscriptionRepository",
    "DeliveryRepository",
]

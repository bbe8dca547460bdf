"""
Connectors - Registry.

============================================================
PURPOSE
============================================================
CRUD store of connector configuration. No logic beyond holding
configuration; every other component reads connectors from here.

SAFETY:
- Connectors are always created Disabled
- Enable/disable are explicit operator actions

============================================================
"""

import logging
from typing import List, Optional

from core.clock import ClockProtocol, SystemClock
from core.exceptions import ConnectorNotFoundError
from storage.database import Database
from storage.models.connectors import Connector, ConnectorStatus
from storage.repositories.connectors import ConnectorRepository
from connectors.masking import mask_value


logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Connector configuration service."""

    def __init__(self, database: Database, clock: Optional[ClockProtocol] = None):
        self._database = database
        self._clock = clock or SystemClock()

    # ----- CREATE / READ -----

    async def create_connector(
        self,
        name: str,
        connector_type: str,
        endpoint_base_url: str,
        authentication_type: str,
        authentication_secret_ref: str,
        capabilities: str,
        created_by: str,
        rate_limit_per_minute: int = 0,
        max_retry_attempts: int = 3,
        retry_delay_seconds: int = 5,
        use_exponential_backoff: bool = True,
        description: Optional[str] = None,
        mapping_configuration: str = "{}",
    ) -> Connector:
        """Register a connector. Status is always Disabled."""
        connector = Connector(
            name=name,
            connector_type=connector_type,
            status=ConnectorStatus.DISABLED.value,
            endpoint_base_url=endpoint_base_url,
            authentication_type=authentication_type,
            authentication_secret_ref=authentication_secret_ref,
            capabilities=capabilities,
            rate_limit_per_minute=rate_limit_per_minute,
            max_retry_attempts=max_retry_attempts,
            retry_delay_seconds=retry_delay_seconds,
            use_exponential_backoff=use_exponential_backoff,
            mapping_configuration=mapping_configuration,
            description=description,
            created_by=created_by,
            created_at=self._clock.now(),
        )
        async with self._database.transaction() as session:
            await ConnectorRepository(session).add(connector)

        logger.info(
            f"Connector created: id={connector.id} name={name!r} type={connector_type} "
            f"secret_ref={mask_value(authentication_secret_ref)}"
        )
        return connector

    async def get_connector(self, connector_id: int) -> Optional[Connector]:
        async with self._database.transaction() as session:
            return await ConnectorRepository(session).get(connector_id)

    async def list_connectors(self) -> List[Connector]:
        async with self._database.transaction() as session:
            return await ConnectorRepository(session).list_all()

    # ----- STATUS -----

    async def enable_connector(self, connector_id: int, updated_by: str) -> Connector:
        return await self._set_status(connector_id, ConnectorStatus.ENABLED, updated_by)

    async def disable_connector(self, connector_id: int, updated_by: str) -> Connector:
        return await self._set_status(connector_id, ConnectorStatus.DISABLED, updated_by)

    async def _set_status(
        self,
        connector_id: int,
        status: ConnectorStatus,
        updated_by: str,
    ) -> Connector:
        async with self._database.transaction() as session:
            repo = ConnectorRepository(session)
            connector = await repo.get(connector_id)
            if connector is None:
                raise ConnectorNotFoundError(connector_id)

            connector.status = status.value
            connector.updated_by = updated_by
            connector.updated_at = self._clock.now()
            await repo.save()

        logger.info(f"Connector {connector_id} set to {status.value} by {updated_by}")
        return connector

    # ----- UPDATE -----

    async def update_connector(
        self,
        connector_id: int,
        name: str,
        endpoint_base_url: str,
        authentication_type: str,
        authentication_secret_ref: str,
        capabilities: str,
        updated_by: str,
        rate_limit_per_minute: int = 0,
        max_retry_attempts: int = 3,
        retry_delay_seconds: int = 5,
        use_exponential_backoff: bool = True,
        description: Optional[str] = None,
        mapping_configuration: Optional[str] = None,
    ) -> Connector:
        """
        Replace connector configuration.

        mapping_configuration is only replaced when supplied; status is
        never changed here.
        """
        async with self._database.transaction() as session:
            repo = ConnectorRepository(session)
            connector = await repo.get(connector_id)
            if connector is None:
                raise ConnectorNotFoundError(connector_id)

            connector.name = name
            connector.endpoint_base_url = endpoint_base_url
            connector.authentication_type = authentication_type
            connector.authentication_secret_ref = authentication_secret_ref
            connector.capabilities = capabilities
            connector.rate_limit_per_minute = rate_limit_per_minute
            connector.max_retry_attempts = max_retry_attempts
            connector.retry_delay_seconds = retry_delay_seconds
            connector.use_exponential_backoff = use_exponential_backoff
            connector.description = description
            if mapping_configuration is not None:
                connector.mapping_configuration = mapping_configuration
            connector.updated_by = updated_by
            connector.updated_at = self._clock.now()
            await repo.save()

        logger.info(f"Connector {connector_id} updated by {updated_by}")
        return connector

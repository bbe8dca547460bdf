"""
Shared fixtures.

Repository-backed tests run against a real SQLite database
(aiosqlite) created per test under tmp_path.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from core.clock import MockClock
from core.config import DatabaseConfig
from connectors.registry import ConnectorRegistry
from storage.database import Database
from storage.models.connectors import Connector, ConnectorType


START = datetime(2026, 3, 1, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return MockClock(START)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'integration.db'}"))
    await db.connect()
    await db.create_all()
    yield db
    await db.disconnect()


@pytest.fixture
def registry(database, clock):
    return ConnectorRegistry(database, clock)


@pytest.fixture
def make_connector(registry):
    """Factory: create (and by default enable) a connector."""

    async def _make(
        connector_type: str = ConnectorType.HR.value,
        enabled: bool = True,
        endpoint_base_url: str = "http://erp.test/api",
        mapping_configuration: str = "{}",
        **kwargs,
    ) -> Connector:
        params = dict(
            name=kwargs.pop("name", f"{connector_type} System"),
            connector_type=connector_type,
            endpoint_base_url=endpoint_base_url,
            authentication_type="ApiKey",
            authentication_secret_ref="vault://integrations/erp-api-key",
            capabilities="pull",
            created_by="admin",
            mapping_configuration=mapping_configuration,
        )
        params.update(kwargs)
        connector = await registry.create_connector(**params)
        if enabled:
            connector = await registry.enable_connector(connector.id, "admin")
        return connector

    return _make

"""
Tests for the Database handle.
"""

import pytest
from sqlalchemy import text

from core.config import DatabaseConfig
from storage.database import Database
from storage.repositories.exceptions import DatabaseConnectionError


@pytest.mark.asyncio
class TestDatabase:

    async def test_health_check_connected(self, database):
        assert await database.health_check() is True

    async def test_health_check_after_disconnect(self, tmp_path):
        db = Database(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'health.db'}"))
        await db.connect()
        await db.disconnect()

        assert await db.health_check() is False

    async def test_session_requires_connect(self):
        with pytest.raises(DatabaseConnectionError):
            Database().session()

    async def test_transaction_rolls_back_on_error(self, database):
        async with database.transaction() as session:
            await session.execute(text("CREATE TABLE scratch (id INTEGER PRIMARY KEY)"))

        with pytest.raises(RuntimeError):
            async with database.transaction() as session:
                await session.execute(text("INSERT INTO scratch (id) VALUES (1)"))
                raise RuntimeError("abort")

        async with database.transaction() as session:
            count = (await session.execute(text("SELECT COUNT(*) FROM scratch"))).scalar_one()
        assert count == 0

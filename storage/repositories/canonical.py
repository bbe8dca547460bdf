"""
Canonical Data Model Repositories.
"""

from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from storage.models.canonical import (
    CanonicalAttribute,
    CanonicalEntity,
    CanonicalEntityVersion,
    CanonicalMapping,
)
from storage.repositories.base import BaseRepository


class SchemaVersionRepository(BaseRepository[CanonicalEntityVersion]):
    """Canonical schema versions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CanonicalEntityVersion, "SchemaVersionRepository")

    async def add(self, version: CanonicalEntityVersion) -> CanonicalEntityVersion:
        return await self._add(
            version,
            {"unique_key": "entity_type,version", "value": f"{version.entity_type},{version.version}"},
        )

    async def get(self, entity_type: str, version: int) -> Optional[CanonicalEntityVersion]:
        stmt = select(CanonicalEntityVersion).where(
            CanonicalEntityVersion.entity_type == entity_type,
            CanonicalEntityVersion.version == version,
        )
        return await self._execute_scalar(stmt, "get")

    async def get_latest_active(self, entity_type: str) -> Optional[CanonicalEntityVersion]:
        """Highest version that is active and not deprecated."""
        stmt = (
            select(CanonicalEntityVersion)
            .where(
                CanonicalEntityVersion.entity_type == entity_type,
                CanonicalEntityVersion.is_active.is_(True),
                CanonicalEntityVersion.is_deprecated.is_(False),
            )
            .order_by(desc(CanonicalEntityVersion.version))
            .limit(1)
        )
        return await self._execute_scalar(stmt, "get_latest_active")

    async def list_for_type(self, entity_type: str) -> List[CanonicalEntityVersion]:
        stmt = (
            select(CanonicalEntityVersion)
            .where(CanonicalEntityVersion.entity_type == entity_type)
            .order_by(CanonicalEntityVersion.version)
        )
        return await self._execute_query(stmt, "list_for_type")

    async def save(self) -> None:
        await self._flush("save")


class AttributeRepository(BaseRepository[CanonicalAttribute]):
    """Canonical attribute definitions."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CanonicalAttribute, "AttributeRepository")

    async def add(self, attribute: CanonicalAttribute) -> CanonicalAttribute:
        return await self._add(attribute)

    async def list_for_version(self, entity_type: str, version: int) -> List[CanonicalAttribute]:
        stmt = (
            select(CanonicalAttribute)
            .where(
                CanonicalAttribute.entity_type == entity_type,
                CanonicalAttribute.schema_version == version,
            )
            .order_by(CanonicalAttribute.attribute_name)
        )
        return await self._execute_query(stmt, "list_for_version")


class MappingRepository(BaseRepository[CanonicalMapping]):
    """Per-connector canonical field mappings."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CanonicalMapping, "MappingRepository")

    async def add(self, mapping: CanonicalMapping) -> CanonicalMapping:
        return await self._add(mapping)

    async def list_active(
        self,
        connector_id: int,
        entity_type: str,
        version: int,
    ) -> List[CanonicalMapping]:
        """Active mappings ordered by priority ascending."""
        stmt = (
            select(CanonicalMapping)
            .where(
                CanonicalMapping.connector_id == connector_id,
                CanonicalMapping.target_entity_type == entity_type,
                CanonicalMapping.target_schema_version == version,
                CanonicalMapping.is_active.is_(True),
            )
            .order_by(CanonicalMapping.priority, CanonicalMapping.id)
        )
        return await self._execute_query(stmt, "list_active")


class CanonicalEntityRepository(BaseRepository[CanonicalEntity]):
    """Mapped canonical entities."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CanonicalEntity, "CanonicalEntityRepository")

    async def add(self, entity: CanonicalEntity) -> CanonicalEntity:
        return await self._add(entity)

    async def get(self, entity_id: int) -> Optional[CanonicalEntity]:
        return await self._get_by_id(entity_id)

    async def save(self) -> None:
        await self._flush("save")

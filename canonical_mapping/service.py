"""
Canonical Mapping - Service.

============================================================
PURPOSE
============================================================
Normalizes heterogeneous external payloads into versioned
canonical entities, and manages the schema versions, attributes
and mappings that drive that normalization.

============================================================
MAPPING PIPELINE
============================================================
1. Resolve schema version (latest active when omitted)
2. Load active mappings for (connector, entity type, version)
3. Check every required field; report ALL missing fields
4. Apply transformations in ascending priority order
5. Keep unmapped external fields verbatim as vendor extensions
6. Persist the entity unapproved

============================================================
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from core.clock import ClockProtocol, SystemClock
from core.config import MappingConfig
from core.exceptions import (
    ApprovedDataProtectedError,
    InvalidConfigError,
    MissingRequiredFieldsError,
    NoActiveSchemaError,
    NoMappingsConfiguredError,
    SchemaVersionExistsError,
)
from canonical_mapping.json_value import JsonString, from_python, string_form, to_python
from canonical_mapping.transformations import (
    TransformContext,
    TransformationKind,
    apply_transformation,
)
from storage.database import Database
from storage.models.canonical import (
    CanonicalAttribute,
    CanonicalEntity,
    CanonicalEntityType,
    CanonicalEntityVersion,
    CanonicalMapping,
)
from storage.repositories.canonical import (
    AttributeRepository,
    CanonicalEntityRepository,
    MappingRepository,
    SchemaVersionRepository,
)
from storage.repositories.exceptions import DuplicateRecordError, RecordNotFoundError


logger = logging.getLogger(__name__)


EXTERNAL_ID_KEYS = ("id", "externalId", "external_id")

EntityTypeArg = Union[CanonicalEntityType, str]


def resolve_entity_type(entity_type: EntityTypeArg) -> CanonicalEntityType:
    """Validate an entity type against the closed enumeration."""
    if isinstance(entity_type, CanonicalEntityType):
        return entity_type
    try:
        return CanonicalEntityType(entity_type)
    except ValueError as e:
        raise InvalidConfigError("entity_type", entity_type, "unknown canonical entity type") from e


def resolve_external_id(external_data: Mapping[str, Any]) -> Optional[str]:
    """First present key of id / externalId / external_id, as text."""
    for key in EXTERNAL_ID_KEYS:
        if key in external_data:
            value = external_data[key]
            return None if value is None else string_form(from_python(value))
    return None


class CanonicalMappingService:
    """Canonical data model service."""

    def __init__(
        self,
        database: Database,
        config: Optional[MappingConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._database = database
        self._config = config or MappingConfig()
        self._clock = clock or SystemClock()
        self._ctx = TransformContext(fte_standard_hours=self._config.fte_standard_hours)

    # ============================================================
    # MAPPING
    # ============================================================

    async def map_to_canonical_entity(
        self,
        connector_id: int,
        entity_type: EntityTypeArg,
        external_data: Mapping[str, Any],
        source_system: str,
        schema_version: Optional[int] = None,
        source_version: Optional[str] = None,
        import_job_id: Optional[str] = None,
    ) -> CanonicalEntity:
        """
        Map one external payload to a persisted canonical entity.

        Raises:
            NoActiveSchemaError: No version given and none active
            NoMappingsConfiguredError: No active mappings
            MissingRequiredFieldsError: Names every missing required field
            UnknownTransformationError: A stored mapping has an unknown kind
        """
        entity_type = resolve_entity_type(entity_type)

        async with self._database.transaction() as session:
            if schema_version is None:
                latest = await SchemaVersionRepository(session).get_latest_active(entity_type.value)
                if latest is None:
                    raise NoActiveSchemaError(entity_type.value)
                schema_version = latest.version

            mappings = await MappingRepository(session).list_active(
                connector_id, entity_type.value, schema_version
            )
            if not mappings:
                raise NoMappingsConfiguredError(connector_id, entity_type.value, schema_version)

            data = self.apply_mappings(mappings, external_data)
            extensions = self.collect_vendor_extensions(mappings, external_data)

            entity = CanonicalEntity(
                entity_type=entity_type.value,
                schema_version=schema_version,
                external_id=resolve_external_id(external_data),
                data=data,
                vendor_extensions=extensions or None,
                source_system=source_system,
                source_version=source_version,
                connector_id=connector_id,
                imported_at=self._clock.now(),
                imported_by_job_id=import_job_id,
                is_approved=False,
            )
            await CanonicalEntityRepository(session).add(entity)

        logger.info(
            f"Mapped {entity_type.value} v{schema_version} external_id={entity.external_id} "
            f"({len(data)} attributes, {len(extensions)} vendor extensions)"
        )
        return entity

    def apply_mappings(
        self,
        mappings: List[CanonicalMapping],
        external_data: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Required-field check, then priority-ordered transformations."""
        missing = [
            m.external_field
            for m in mappings
            if m.is_required and m.external_field not in external_data and not m.default_value
        ]
        if missing:
            raise MissingRequiredFieldsError(missing)

        # Parse every kind up front so a bad row fails before any output
        kinds = {m.id: TransformationKind.parse(m.transformation_type) for m in mappings}

        canonical: Dict[str, Any] = {}
        for mapping in sorted(mappings, key=lambda m: m.priority):
            if mapping.external_field in external_data:
                value = apply_transformation(
                    kinds[mapping.id],
                    from_python(external_data[mapping.external_field]),
                    mapping.transformation_params,
                    self._ctx,
                )
            elif mapping.default_value:
                value = JsonString(mapping.default_value)
            else:
                continue

            result = to_python(value)
            if result is not None:
                canonical[mapping.canonical_attribute] = result
        return canonical

    @staticmethod
    def collect_vendor_extensions(
        mappings: List[CanonicalMapping],
        external_data: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """External fields no mapping covers, values untouched."""
        mapped_fields = {m.external_field for m in mappings}
        return {k: v for k, v in external_data.items() if k not in mapped_fields}

    # ============================================================
    # SCHEMA VERSIONS
    # ============================================================

    async def create_schema_version(
        self,
        entity_type: EntityTypeArg,
        version: int,
        schema_definition: str,
        description: str,
        created_by: str,
        backward_compatible_with_version: Optional[int] = None,
        migration_rules: Optional[str] = None,
    ) -> CanonicalEntityVersion:
        """
        Register a new active schema version.

        Raises:
            SchemaVersionExistsError: (entity type, version) already registered
        """
        entity_type = resolve_entity_type(entity_type)
        schema = CanonicalEntityVersion(
            entity_type=entity_type.value,
            version=version,
            schema_definition=schema_definition,
            description=description,
            is_active=True,
            is_deprecated=False,
            backward_compatible_with_version=backward_compatible_with_version,
            migration_rules=migration_rules,
            created_by=created_by,
            created_at=self._clock.now(),
        )

        try:
            async with self._database.transaction() as session:
                repo = SchemaVersionRepository(session)
                if await repo.get(entity_type.value, version) is not None:
                    raise SchemaVersionExistsError(entity_type.value, version)
                await repo.add(schema)
        except DuplicateRecordError as e:
            # Lost a race with a concurrent create of the same pair
            raise SchemaVersionExistsError(entity_type.value, version) from e

        logger.info(f"Schema version created: {entity_type.value} v{version} by {created_by}")
        return schema

    async def deprecate_schema_version(
        self,
        entity_type: EntityTypeArg,
        version: int,
        updated_by: str,
    ) -> CanonicalEntityVersion:
        entity_type = resolve_entity_type(entity_type)
        async with self._database.transaction() as session:
            repo = SchemaVersionRepository(session)
            schema = await repo.get(entity_type.value, version)
            if schema is None:
                raise RecordNotFoundError(
                    "SchemaVersionRepository", f"{entity_type.value} v{version}", "version"
                )
            schema.is_deprecated = True
            schema.deprecated_at = self._clock.now()
            schema.updated_by = updated_by
            schema.updated_at = schema.deprecated_at
            await repo.save()

        logger.info(f"Schema version deprecated: {entity_type.value} v{version} by {updated_by}")
        return schema

    async def get_latest_active_version(self, entity_type: EntityTypeArg) -> Optional[CanonicalEntityVersion]:
        entity_type = resolve_entity_type(entity_type)
        async with self._database.transaction() as session:
            return await SchemaVersionRepository(session).get_latest_active(entity_type.value)

    async def validate_backward_compatibility(
        self,
        entity_type: EntityTypeArg,
        current_version: int,
        new_version: int,
    ) -> bool:
        """True iff both versions exist and new declares compatibility with <= current."""
        entity_type = resolve_entity_type(entity_type)
        async with self._database.transaction() as session:
            repo = SchemaVersionRepository(session)
            current = await repo.get(entity_type.value, current_version)
            new = await repo.get(entity_type.value, new_version)

        if current is None or new is None:
            return False
        compatible_with = new.backward_compatible_with_version
        return compatible_with is not None and compatible_with <= current_version

    # ============================================================
    # ATTRIBUTES AND MAPPINGS
    # ============================================================

    async def create_attribute(
        self,
        entity_type: EntityTypeArg,
        schema_version: int,
        attribute_name: str,
        data_type: str,
        created_by: str,
        is_required: bool = False,
        description: Optional[str] = None,
        example_values: Optional[str] = None,
        validation_rules: Optional[str] = None,
        default_value: Optional[str] = None,
    ) -> CanonicalAttribute:
        entity_type = resolve_entity_type(entity_type)
        attribute = CanonicalAttribute(
            entity_type=entity_type.value,
            schema_version=schema_version,
            attribute_name=attribute_name,
            data_type=data_type,
            is_required=is_required,
            description=description,
            example_values=example_values,
            validation_rules=validation_rules,
            default_value=default_value,
            created_by=created_by,
            created_at=self._clock.now(),
        )
        async with self._database.transaction() as session:
            await AttributeRepository(session).add(attribute)
        return attribute

    async def get_attributes(self, entity_type: EntityTypeArg, schema_version: int) -> List[CanonicalAttribute]:
        entity_type = resolve_entity_type(entity_type)
        async with self._database.transaction() as session:
            return await AttributeRepository(session).list_for_version(entity_type.value, schema_version)

    async def create_mapping(
        self,
        connector_id: int,
        target_entity_type: EntityTypeArg,
        target_schema_version: int,
        external_field: str,
        canonical_attribute: str,
        transformation_type: str,
        created_by: str,
        transformation_params: Optional[str] = None,
        is_required: bool = False,
        default_value: Optional[str] = None,
        priority: int = 0,
        notes: Optional[str] = None,
    ) -> CanonicalMapping:
        """
        Create a field mapping.

        Raises:
            UnknownTransformationError: transformation_type outside the closed set
        """
        entity_type = resolve_entity_type(target_entity_type)
        kind = TransformationKind.parse(transformation_type)

        mapping = CanonicalMapping(
            connector_id=connector_id,
            target_entity_type=entity_type.value,
            target_schema_version=target_schema_version,
            external_field=external_field,
            canonical_attribute=canonical_attribute,
            transformation_type=kind.value,
            transformation_params=transformation_params,
            is_required=is_required,
            default_value=default_value,
            priority=priority,
            is_active=True,
            notes=notes,
            created_by=created_by,
            created_at=self._clock.now(),
        )
        async with self._database.transaction() as session:
            await MappingRepository(session).add(mapping)

        logger.info(
            f"Mapping created: connector={connector_id} {entity_type.value} v{target_schema_version} "
            f"{external_field} -> {canonical_attribute} ({kind.value})"
        )
        return mapping

    # ============================================================
    # APPROVAL
    # ============================================================

    async def approve_entity(self, entity_id: int, approved_by: str) -> CanonicalEntity:
        """Promote a canonical entity to approved."""
        async with self._database.transaction() as session:
            repo = CanonicalEntityRepository(session)
            entity = await repo.get(entity_id)
            if entity is None:
                raise RecordNotFoundError("CanonicalEntityRepository", entity_id)
            entity.is_approved = True
            entity.approved_by = approved_by
            entity.approved_at = self._clock.now()
            await repo.save()

        logger.info(f"Canonical entity {entity_id} approved by {approved_by}")
        return entity

    async def update_entity_data(
        self,
        entity_id: int,
        data: Dict[str, Any],
        updated_by: str,
        admin_override: bool = False,
    ) -> CanonicalEntity:
        """
        Replace an entity's canonical data.

        Raises:
            ApprovedDataProtectedError: Entity is approved and no override given
        """
        async with self._database.transaction() as session:
            repo = CanonicalEntityRepository(session)
            entity = await repo.get(entity_id)
            if entity is None:
                raise RecordNotFoundError("CanonicalEntityRepository", entity_id)
            if entity.is_approved and not admin_override:
                raise ApprovedDataProtectedError("CanonicalEntity", entity_id)

            entity.data = dict(data)
            entity.updated_by = updated_by
            entity.updated_at = self._clock.now()
            await repo.save()

        if admin_override and entity.is_approved:
            logger.warning(f"Approved canonical entity {entity_id} overwritten by admin {updated_by}")
        return entity

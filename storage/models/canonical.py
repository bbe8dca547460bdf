"""
Canonical Data Model ORM Models.

============================================================
PURPOSE
============================================================
Versioned canonical schemas, their attributes, per-connector
field mappings and the mapped canonical entities.

============================================================
INVARIANTS
============================================================
- (entity_type, version) is unique
- Latest active version = highest version that is active and
  not deprecated
- CanonicalEntity starts unapproved; once approved it is only
  changed through an explicit admin override

============================================================
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import AuditMixin, Base, JsonColumn, utc_now


class CanonicalEntityType(str, Enum):
    """Closed set of canonical entity types."""

    # HR
    EMPLOYEE = "Employee"
    DEPARTMENT = "Department"
    ORGANIZATIONAL_UNIT = "OrganizationalUnit"
    POSITION = "Position"
    TRAINING_RECORD = "TrainingRecord"

    # Finance
    SPEND = "Spend"
    REVENUE = "Revenue"
    CAPITAL_EXPENDITURE = "CapitalExpenditure"
    OPERATIONAL_EXPENDITURE = "OperationalExpenditure"
    SUPPLIER = "Supplier"
    INVOICE = "Invoice"

    # Environmental
    ENERGY_CONSUMPTION = "EnergyConsumption"
    WATER_USAGE = "WaterUsage"
    WASTE_GENERATION = "WasteGeneration"
    EMISSIONS_RECORD = "EmissionsRecord"

    # Social / governance
    SAFETY_INCIDENT = "SafetyIncident"
    COMMUNITY_ENGAGEMENT = "CommunityEngagement"
    COMPLIANCE_RECORD = "ComplianceRecord"
    POLICY_DOCUMENT = "PolicyDocument"


class CanonicalEntityVersion(Base, AuditMixin):
    """Schema version for one canonical entity type."""

    __tablename__ = "canonical_entity_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    schema_definition: Mapped[str] = mapped_column(Text, nullable=False, comment="JSON schema text")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    is_deprecated: Mapped[bool] = mapped_column(nullable=False, default=False)
    deprecated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    backward_compatible_with_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    migration_rules: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("entity_type", "version", name="uq_canonical_version_type_version"),
    )

    def __repr__(self) -> str:
        return f"<CanonicalEntityVersion({self.entity_type} v{self.version})>"


class CanonicalAttribute(Base, AuditMixin):
    """Field definition scoped to (entity type, version)."""

    __tablename__ = "canonical_attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)
    attribute_name: Mapped[str] = mapped_column(String(100), nullable=False)
    data_type: Mapped[str] = mapped_column(String(30), nullable=False, comment="string, number, boolean, date, ...")

    is_required: Mapped[bool] = mapped_column(nullable=False, default=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    example_values: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    validation_rules: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    default_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_deprecated: Mapped[bool] = mapped_column(nullable=False, default=False)
    deprecated_in_version: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    replaced_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_canonical_attributes_type_version", "entity_type", "schema_version"),
    )


class CanonicalMapping(Base, AuditMixin):
    """One external field -> one canonical attribute for a connector."""

    __tablename__ = "canonical_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_schema_version: Mapped[int] = mapped_column(Integer, nullable=False)

    external_field: Mapped[str] = mapped_column(String(200), nullable=False)
    canonical_attribute: Mapped[str] = mapped_column(String(100), nullable=False)

    transformation_type: Mapped[str] = mapped_column(String(20), nullable=False, default="direct")
    transformation_params: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="JSON text")

    is_required: Mapped[bool] = mapped_column(nullable=False, default=False)
    default_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="Ascending application order")
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "ix_canonical_mappings_lookup",
            "connector_id", "target_entity_type", "target_schema_version",
        ),
    )


class CanonicalEntity(Base):
    """Output of the mapping pipeline."""

    __tablename__ = "canonical_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    data: Mapped[Dict[str, Any]] = mapped_column(JsonColumn, nullable=False)
    vendor_extensions: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JsonColumn,
        nullable=True,
        comment="Unmapped external fields, verbatim; null when none"
    )

    source_system: Mapped[str] = mapped_column(String(100), nullable=False)
    source_version: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)

    imported_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    imported_by_job_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_approved: Mapped[bool] = mapped_column(nullable=False, default=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    updated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_canonical_entities_type_external", "entity_type", "external_id"),
    )

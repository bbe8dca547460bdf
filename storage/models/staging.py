"""
Staging Domain ORM Models (HR, Finance).

============================================================
PURPOSE
============================================================
Staging entities written by the domain sync services, each
paired with an append-only sync record per processed record.

============================================================
INVARIANTS
============================================================
- At most one staging entity per (connector_id, external_id)
- Sync records are history: inserted, never updated

============================================================
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import Base, JsonColumn, utc_now


class SyncRecordStatus(str, Enum):
    """Per-record outcome."""
    SUCCESS = "Success"
    REJECTED = "Rejected"
    FAILED = "Failed"
    CONFLICT_PRESERVED = "ConflictPreserved"


class ConflictResolution(str, Enum):
    """How a Finance record interacted with approved data."""
    NO_CONFLICT = "NoConflict"
    PRESERVED_MANUAL = "PreservedManual"
    ADMIN_OVERRIDE = "AdminOverride"


# ============================================================
# HR
# ============================================================

class HREntity(Base):
    """Staged HR record (employee etc.)."""

    __tablename__ = "hr_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    external_id: Mapped[str] = mapped_column(String(200), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Employee")

    data: Mapped[Dict[str, Any]] = mapped_column(JsonColumn, nullable=False, comment="Raw record")
    mapped_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonColumn, nullable=True)

    is_approved: Mapped[bool] = mapped_column(nullable=False, default=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    import_job_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    imported_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("connector_id", "external_id", name="uq_hr_entities_connector_external"),
    )


class HRSyncRecord(Base):
    """Outcome of one HR record in one sync run."""

    __tablename__ = "hr_sync_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    import_job_id: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    hr_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    raw_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonColumn, nullable=True)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    overwrote_approved_data: Mapped[bool] = mapped_column(nullable=False, default=False)

    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_hr_sync_records_connector_synced", "connector_id", "synced_at"),
    )


# ============================================================
# FINANCE
# ============================================================

class FinanceEntity(Base):
    """Staged Finance record (spend, revenue, ...)."""

    __tablename__ = "finance_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    external_id: Mapped[str] = mapped_column(String(200), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Unknown")

    data: Mapped[Dict[str, Any]] = mapped_column(JsonColumn, nullable=False, comment="Raw record")
    mapped_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonColumn, nullable=True)

    is_approved: Mapped[bool] = mapped_column(nullable=False, default=False)
    approved_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    source_system: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    extract_timestamp: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    canonical_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    import_job_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    imported_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("connector_id", "external_id", name="uq_finance_entities_connector_external"),
    )


class FinanceSyncRecord(Base):
    """Outcome of one Finance record, with conflict audit fields."""

    __tablename__ = "finance_sync_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    import_job_id: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    finance_entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    raw_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JsonColumn, nullable=True)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    overwrote_approved_data: Mapped[bool] = mapped_column(nullable=False, default=False)

    conflict_detected: Mapped[bool] = mapped_column(nullable=False, default=False)
    conflict_resolution: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    approved_override_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_finance_sync_records_connector_synced", "connector_id", "synced_at"),
    )

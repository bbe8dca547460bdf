"""
Connector Domain ORM Models.

============================================================
PURPOSE
============================================================
Models for connector configuration and the audit trail of
outbound calls and batch jobs executed through connectors.

============================================================
DATA LIFECYCLE ROLE
============================================================
- Connector: MUTABLE configuration, created Disabled
- IntegrationLog: IMMUTABLE, written once per execute_with_retry call
- IntegrationJobMetadata: MUTABLE until the job reaches a terminal status

============================================================
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from storage.models.base import AuditMixin, Base, utc_now


# ============================================================
# ENUMS (stored as strings)
# ============================================================

class ConnectorStatus(str, Enum):
    """Connector enablement flag."""
    DISABLED = "Disabled"
    ENABLED = "Enabled"


class ConnectorType(str, Enum):
    """Known connector domains. Stored free-form; these are the ones with sync services."""
    HR = "HR"
    FINANCE = "Finance"


class IntegrationLogStatus(str, Enum):
    """Outcome of one execute_with_retry call."""
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class JobStatus(str, Enum):
    """Batch job lifecycle."""
    QUEUED = "Queued"
    RUNNING = "Running"
    COMPLETED = "Completed"
    COMPLETED_WITH_ERRORS = "CompletedWithErrors"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


TERMINAL_JOB_STATUSES = frozenset({
    JobStatus.COMPLETED,
    JobStatus.COMPLETED_WITH_ERRORS,
    JobStatus.FAILED,
    JobStatus.CANCELLED,
})


# ============================================================
# CONNECTOR
# ============================================================

class Connector(Base, AuditMixin):
    """
    Configured integration endpoint for one external system.

    Holds the secret *reference* only, never the secret value.
    Referenced by id from every other table.
    """

    __tablename__ = "connectors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    connector_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Domain: HR, Finance, ..."
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ConnectorStatus.DISABLED.value,
        comment="Disabled, Enabled"
    )

    endpoint_base_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    authentication_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    authentication_secret_ref: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="Reference into the secret store"
    )

    capabilities: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Comma separated: pull, push, ..."
    )

    rate_limit_per_minute: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Retry policy
    max_retry_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retry_delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    use_exponential_backoff: Mapped[bool] = mapped_column(nullable=False, default=True)

    mapping_configuration: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="{}",
        comment="Connector-embedded mapping JSON"
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def is_enabled(self) -> bool:
        return self.status == ConnectorStatus.ENABLED.value

    def __repr__(self) -> str:
        return f"<Connector(id={self.id}, name={self.name!r}, type={self.connector_type}, status={self.status})>"


# ============================================================
# INTEGRATION LOG
# ============================================================

class IntegrationLog(Base):
    """
    Immutable record of one execution attempt-set.

    Built in memory while attempts run and persisted once, after
    finalization.
    """

    __tablename__ = "integration_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    connector_id: Mapped[int] = mapped_column(Integer, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    operation_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="pull, push, sync, test")
    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=IntegrationLogStatus.IN_PROGRESS.value,
        comment="InProgress, Success, Failed, Skipped"
    )

    http_method: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    endpoint: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    http_status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    retry_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Traceback text")

    request_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True, comment="Verbatim response body")

    started_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_integration_logs_connector_started", "connector_id", "started_at"),
        Index("ix_integration_logs_correlation", "correlation_id"),
    )

    @property
    def is_success(self) -> bool:
        return self.status == IntegrationLogStatus.SUCCESS.value

    def __repr__(self) -> str:
        return f"<IntegrationLog(id={self.id}, connector={self.connector_id}, status={self.status})>"


# ============================================================
# JOB METADATA
# ============================================================

class IntegrationJobMetadata(Base):
    """One row per batch run (sync, export, ...)."""

    __tablename__ = "integration_job_metadata"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    job_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    connector_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    correlation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    job_type: Mapped[str] = mapped_column(String(50), nullable=False, comment="HRSync, FinanceSync, ...")

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=JobStatus.QUEUED.value)

    started_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    total_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    initiated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_job_metadata_started", "started_at"),
        Index("ix_job_metadata_connector", "connector_id"),
    )

    def __repr__(self) -> str:
        return f"<IntegrationJobMetadata(job_id={self.job_id!r}, status={self.status})>"

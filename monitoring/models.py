"""
Integration Monitoring - View Models.

============================================================
PURPOSE
============================================================
Read-only views assembled from job metadata, integration logs
and Finance sync records. Nothing here is persisted.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from storage.models.connectors import IntegrationJobMetadata, IntegrationLog


OVERRIDE_ACTION = "Override Approved"
FINANCE_ENTITY_TYPE = "FinanceEntity"


@dataclass
class JobDetails:
    """A job plus every log sharing its correlation id."""

    job: IntegrationJobMetadata
    logs: List[IntegrationLog] = field(default_factory=list)


@dataclass
class ApprovalHistoryEntry:
    """One supervised override of approved Finance data."""

    id: int
    timestamp: datetime
    action: str
    approved_by: str
    connector_id: int
    entity_type: str
    external_id: Optional[str]
    correlation_id: str
    details: str


@dataclass
class IntegrationStatistics:
    """
    Aggregates over a date range.

    Rates are percentages in [0, 100]; 0 when there is nothing
    to divide by.
    """

    start_date: datetime
    end_date: datetime
    connector_id: Optional[int] = None

    # Jobs
    total_jobs: int = 0
    jobs_by_status: Dict[str, int] = field(default_factory=dict)
    job_success_rate: float = 0.0
    average_job_duration_ms: Optional[float] = None

    # Records
    total_records: int = 0
    successful_records: int = 0
    failed_records: int = 0
    skipped_records: int = 0
    record_success_rate: float = 0.0

    # API calls
    total_api_calls: int = 0
    successful_api_calls: int = 0
    failed_api_calls: int = 0
    skipped_api_calls: int = 0
    api_success_rate: float = 0.0

"""
Integration Monitoring Package.

============================================================
PURPOSE
============================================================
Strictly observational views over batch jobs, integration logs
and approval overrides, plus the job metadata lifecycle used by
the sync services.

============================================================
"""

from monitoring.models import (
    ApprovalHistoryEntry,
    IntegrationStatistics,
    JobDetails,
)
from monitoring.service import IntegrationMonitoringService


__all__ = [
    "ApprovalHistoryEntry",
    "IntegrationStatistics",
    "JobDetails",
    "IntegrationMonitoringService",
]

"""
Domain Sync Services Package.

============================================================
PURPOSE
============================================================
HR and Finance batch synchronization into staging tables:
connect -> map -> reconcile, with per-record outcomes and an
import job id tagging everything one run writes.

CRITICAL PRINCIPLE:
    "Human-approved data is never silently overwritten."

============================================================
"""

from sync_services.base import BaseSyncService, SyncRun, new_import_job_id
from sync_services.finance_sync_service import CONFLICT_MESSAGE, FinanceSyncService
from sync_services.hr_sync_service import APPROVED_DATA_MESSAGE, HRSyncService
from sync_services.locks import KeyedLock
from sync_services.mapping_config import (
    FINANCE_TRANSFORMS,
    HR_TRANSFORMS,
    NO_MAPPING_MESSAGE,
    FieldMapping,
    MappingConfiguration,
    MappingResult,
    apply_connector_mapping,
    parse_mapping_configuration,
)
from sync_services.records import ExternalRecord, decode_records, parse_records
from sync_services.results import SyncOutcome, SyncResult, TestConnectionResult


__all__ = [
    # Services
    "BaseSyncService",
    "FinanceSyncService",
    "HRSyncService",
    "SyncRun",
    "new_import_job_id",
    "APPROVED_DATA_MESSAGE",
    "CONFLICT_MESSAGE",
    # Mapping
    "FINANCE_TRANSFORMS",
    "HR_TRANSFORMS",
    "NO_MAPPING_MESSAGE",
    "FieldMapping",
    "MappingConfiguration",
    "MappingResult",
    "apply_connector_mapping",
    "parse_mapping_configuration",
    # Records
    "ExternalRecord",
    "decode_records",
    "parse_records",
    # Results
    "KeyedLock",
    "SyncOutcome",
    "SyncResult",
    "TestConnectionResult",
]

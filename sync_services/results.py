"""
Sync Services - Result Types.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SyncOutcome(str, Enum):
    """Exactly one per processed record."""
    IMPORTED = "imported"
    UPDATED = "updated"
    CONFLICT_PRESERVED = "conflict_preserved"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of one batch sync run."""

    connector_id: int
    correlation_id: str
    import_job_id: str
    is_scheduled: bool
    started_at: datetime

    success: bool = False
    message: str = ""
    cancelled: bool = False

    total_records: int = 0
    imported_count: int = 0
    updated_count: int = 0
    conflicts_preserved_count: int = 0
    rejected_count: int = 0
    failed_count: int = 0

    completed_at: Optional[datetime] = None

    def record(self, outcome: SyncOutcome) -> None:
        if outcome == SyncOutcome.IMPORTED:
            self.imported_count += 1
        elif outcome == SyncOutcome.UPDATED:
            self.updated_count += 1
        elif outcome == SyncOutcome.CONFLICT_PRESERVED:
            self.conflicts_preserved_count += 1
        elif outcome == SyncOutcome.REJECTED:
            self.rejected_count += 1
        else:
            self.failed_count += 1

    @property
    def processed_count(self) -> int:
        return (
            self.imported_count
            + self.updated_count
            + self.conflicts_preserved_count
            + self.rejected_count
            + self.failed_count
        )


@dataclass
class TestConnectionResult:
    """Outcome of a connection test. Never raised, always returned."""

    __test__ = False

    success: bool
    message: str
    correlation_id: Optional[str] = None
    duration_ms: Optional[int] = None
    error_details: Optional[str] = None

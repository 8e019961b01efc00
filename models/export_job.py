"""
Export job state models.

These models carry the state of a background export from the export thread
to request handlers. The export thread replaces the stored state on every
progress emission; handlers only ever read complete, frozen instances.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from models.export_result import MultiFormatExportResult


class ExportJobStatus(Enum):
    """
    Status of an export job.

    Lifecycle:
        PENDING -> RUNNING -> (COMPLETED | FAILED | CANCELLED)
    """

    PENDING = "pending"
    """Job accepted, thread not started yet."""

    RUNNING = "running"
    """Export in progress; ``latest_result`` shows the last finished stage."""

    COMPLETED = "completed"
    """Export finished. Individual formats may still have failed."""

    FAILED = "failed"
    """Export aborted (validation, storage, or unexpected error)."""

    CANCELLED = "cancelled"
    """Caller cancelled, or a newer export for the same checkup replaced it."""

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExportJobStatus.COMPLETED,
            ExportJobStatus.FAILED,
            ExportJobStatus.CANCELLED,
        )


@dataclass(frozen=True)
class ExportJobState:
    """
    Point-in-time state of one export job.

    Thread Safety:
        - Export thread builds a new state for every update
        - ExportJobStore swaps the reference under a lock
        - Readers never see a partially-updated instance
    """

    job_id: str
    """Unique job identifier (UUID)."""

    checkup_id: str
    """Checkup being exported; at most one active job per checkup."""

    status: ExportJobStatus
    submitted_at: datetime

    latest_result: Optional[MultiFormatExportResult] = None
    """Most recent progress emission from the orchestrator."""

    error: str = ""
    """Error message for FAILED jobs."""

    validation_errors: Tuple[str, ...] = ()
    """Aggregated validation messages when validation aborted the export."""

    finished_at: Optional[datetime] = None

    @classmethod
    def create_pending(cls, job_id: str, checkup_id: str) -> "ExportJobState":
        return cls(
            job_id=job_id,
            checkup_id=checkup_id,
            status=ExportJobStatus.PENDING,
            submitted_at=datetime.now(timezone.utc),
        )

    def with_progress(self, result: MultiFormatExportResult) -> "ExportJobState":
        """State after the orchestrator emitted ``result``."""
        return replace(self, status=ExportJobStatus.RUNNING, latest_result=result)

    def completed(self) -> "ExportJobState":
        return replace(
            self,
            status=ExportJobStatus.COMPLETED,
            finished_at=datetime.now(timezone.utc),
        )

    def cancelled(self) -> "ExportJobState":
        return replace(
            self,
            status=ExportJobStatus.CANCELLED,
            finished_at=datetime.now(timezone.utc),
        )

    def failed(
        self,
        error_message: str,
        validation_errors: Tuple[str, ...] = (),
    ) -> "ExportJobState":
        """
        State for an export that was aborted.

        Args:
            error_message: Description of the failure
            validation_errors: Individual validation messages, if any
        """
        return replace(
            self,
            status=ExportJobStatus.FAILED,
            error=error_message,
            validation_errors=tuple(validation_errors),
            finished_at=datetime.now(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            "job_id": self.job_id,
            "checkup_id": self.checkup_id,
            "status": self.status.value,
            "submitted_at": self.submitted_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
            "validation_errors": list(self.validation_errors),
            "result": self.latest_result.to_dict() if self.latest_result else None,
        }

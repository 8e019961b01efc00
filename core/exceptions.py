"""
Custom exceptions for the QReport export service.

Exception Hierarchy:
    QReportExportError (base)
    ├── ExportValidationError    - Snapshot missing required fields (fatal, before I/O)
    ├── InsufficientStorageError - Pre-flight free space check failed (fatal, before I/O)
    ├── ExportCancelledError     - Caller cancelled the export (ends the stream)
    ├── PhotoProcessingError     - One photo could not be exported (skipped)
    ├── FormatGenerationError    - One format could not be produced (marked absent)
    ├── ExportJobNotFoundError   - Unknown job id (API answers 404)
    └── ExportJobConflictError   - Replaced export did not stop in time (API answers 409)

Usage:
    Validation and storage errors abort the whole export before anything is
    written. Photo and format errors are recovered locally: the photo is
    skipped, the format is reported as not produced, and the export goes on.
"""

from typing import Optional, Dict, Any, List


class QReportExportError(Exception):
    """
    Base exception for all export errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# FATAL ERRORS - The export is aborted before any file is written
# =============================================================================

class ExportValidationError(QReportExportError):
    """
    The checkup snapshot is missing data every report needs.

    All problems are collected before raising, so the caller can show the
    complete list at once instead of fixing one field per attempt.
    """

    def __init__(self, messages: List[str]):
        message = f"Checkup cannot be exported: {len(messages)} validation error(s)"
        details = {
            "messages": list(messages),
            "resolution": "Complete the missing checkup fields and retry the export"
        }
        super().__init__(message, details)
        self.messages = list(messages)


class InsufficientStorageError(QReportExportError):
    """
    Not enough free disk space for the estimated export size.

    Raised by the pre-flight check, before the export directory is created.
    """

    def __init__(self, required_bytes: int, available_bytes: int, path: str):
        message = (
            f"Insufficient storage at {path}: "
            f"need {required_bytes} bytes, only {available_bytes} available"
        )
        details = {
            "path": path,
            "required_bytes": required_bytes,
            "available_bytes": available_bytes,
            "resolution": "Free disk space, run the cleanup sweep, or export fewer formats"
        }
        super().__init__(message, details)
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        self.path = path


# =============================================================================
# CONTROL FLOW
# =============================================================================

class ExportCancelledError(QReportExportError):
    """
    The caller cancelled the export.

    Raised at a stage boundary (between formats or between photos). Work
    already written stays on disk and is reported in the final result.
    """

    def __init__(self, stage: Optional[str] = None):
        message = "Export cancelled"
        if stage:
            message = f"Export cancelled before {stage}"
        super().__init__(message, {"stage": stage} if stage else None)
        self.stage = stage


# =============================================================================
# RECOVERABLE ERRORS - Logged, the export continues without the failed part
# =============================================================================

class PhotoProcessingError(QReportExportError):
    """
    A single photo could not be copied or re-encoded.

    Typical causes:
    - Source file deleted after the checkup was recorded
    - Truncated or corrupt JPEG
    - Permission denied on the source or target folder
    """

    def __init__(self, source_path: str, reason: str):
        message = f"Cannot process photo {source_path}: {reason}"
        details = {"source_path": source_path, "reason": reason}
        super().__init__(message, details)
        self.source_path = source_path
        self.reason = reason


class FormatGenerationError(QReportExportError):
    """
    One export format could not be produced.

    The orchestrator records the format as absent and moves on to the
    next requested format.
    """

    def __init__(self, export_format: str, reason: str):
        message = f"Format '{export_format}' was not produced: {reason}"
        details = {"format": export_format, "reason": reason}
        super().__init__(message, details)
        self.export_format = export_format
        self.reason = reason


class ExportJobNotFoundError(QReportExportError):
    """No export job is known under the given id."""

    def __init__(self, job_id: str):
        super().__init__(f"Export job not found: {job_id}", {"job_id": job_id})
        self.job_id = job_id


class ExportJobConflictError(QReportExportError):
    """
    A new export was refused because the checkup's previous export is still
    writing after the join timeout.

    The previous export has been asked to cancel; retrying shortly usually
    succeeds.
    """

    def __init__(self, checkup_id: str, running_job_id: str):
        message = f"Export {running_job_id} for checkup {checkup_id} is still running"
        details = {
            "checkup_id": checkup_id,
            "running_job_id": running_job_id,
            "resolution": "Retry once the running export has stopped",
        }
        super().__init__(message, details)
        self.checkup_id = checkup_id
        self.running_job_id = running_job_id

"""
Data models for the QReport export service.

This module contains immutable dataclasses for:
- CheckupSnapshot: Read-only view of one checkup, grouped by module
- ExportOptions: Formats and photo policy of one export request
- MultiFormatExportResult: Progress/outcome emitted after every stage
- ExportJobState: Background job status for request handlers

All dataclasses are frozen so they can be passed between the request
thread and export threads without locking.
"""

from .checkup import (
    CheckItem,
    CheckItemStatus,
    CheckupHeader,
    CheckupSnapshot,
    CheckupStatistics,
    CheckupStatus,
    ClientInfo,
    CriticalityLevel,
    IslandInfo,
    ModuleSection,
    Photo,
    SparePart,
    SparePartUrgency,
    TechnicianInfo,
)
from .export_options import ExportFormat, ExportOptions, PhotoNamingStrategy, PhotoQuality
from .export_result import (
    EstimationReport,
    ExportedArtifact,
    ExportedPhoto,
    ExportStatistics,
    FormatEstimation,
    FormatFailure,
    MultiFormatExportResult,
    PhotoContext,
    PhotoExportResult,
)
from .export_job import ExportJobState, ExportJobStatus

__all__ = [
    # Checkup models
    "CheckItem",
    "CheckItemStatus",
    "CheckupHeader",
    "CheckupSnapshot",
    "CheckupStatistics",
    "CheckupStatus",
    "ClientInfo",
    "CriticalityLevel",
    "IslandInfo",
    "ModuleSection",
    "Photo",
    "SparePart",
    "SparePartUrgency",
    "TechnicianInfo",
    # Export request
    "ExportFormat",
    "ExportOptions",
    "PhotoNamingStrategy",
    "PhotoQuality",
    # Export results
    "EstimationReport",
    "ExportedArtifact",
    "ExportedPhoto",
    "ExportStatistics",
    "FormatEstimation",
    "FormatFailure",
    "MultiFormatExportResult",
    "PhotoContext",
    "PhotoExportResult",
    # Jobs
    "ExportJobState",
    "ExportJobStatus",
]

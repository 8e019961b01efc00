"""
Services layer for the QReport export service.

This module contains the export services:
- ExportOrchestrator: validation, directory preparation, per-format stages
- Format exporters: one implementation per ExportFormat
- ExportJobService: export threads and job state store

Thread Model:
    Main Thread (Flask)
    └── ExportJobService threads (one per export, at most one per checkup)

All job threads share one ExportOrchestrator, which keeps no per-export state.
"""

from .export_formats import (
    CombinedPackageExporter,
    DocumentExporter,
    FormatExporter,
    FormatOutcome,
    PhotoFolderExporter,
    TextExporter,
    build_exporters,
)
from .export_orchestrator import ExportOrchestrator
from .export_job_service import ExportJobService, ExportJobStore

__all__ = [
    "ExportOrchestrator",
    "ExportJobService",
    "ExportJobStore",
    "FormatExporter",
    "FormatOutcome",
    "DocumentExporter",
    "TextExporter",
    "PhotoFolderExporter",
    "CombinedPackageExporter",
    "build_exporters",
]

"""
Core module for the QReport export service.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- cancellation: Cooperative cancellation token shared by export workers
"""

from .exceptions import (
    QReportExportError,
    ExportValidationError,
    InsufficientStorageError,
    ExportCancelledError,
    PhotoProcessingError,
    FormatGenerationError,
    ExportJobNotFoundError,
)
from .cancellation import CancellationToken

__all__ = [
    "QReportExportError",
    "ExportValidationError",
    "InsufficientStorageError",
    "ExportCancelledError",
    "PhotoProcessingError",
    "FormatGenerationError",
    "ExportJobNotFoundError",
    "CancellationToken",
]

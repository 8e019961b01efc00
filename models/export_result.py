"""
Export result data models.

These models carry export outcomes from the export thread back to callers.
Every class is frozen: the orchestrator builds a new MultiFormatExportResult
after each stage instead of mutating a shared one, so a reader never sees a
half-updated result.

Completion semantics:
    DOCUMENT, TEXT, PHOTO_FOLDER  complete when their artifact exists.
    COMBINED_PACKAGE              completes only when document, text AND
                                  photo folder artifacts all exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from models.checkup import CheckItemStatus, CriticalityLevel, Photo
from models.export_options import ExportFormat


# =============================================================================
# ARTIFACTS
# =============================================================================

@dataclass(frozen=True)
class ExportedArtifact:
    """One output file or folder written by a generator."""

    path: str
    """Absolute path of the file or folder."""

    name: str
    """Logical name (file or folder name)."""

    size_bytes: int
    """Bytes on disk (recursive for folders)."""

    format: ExportFormat
    """Format that produced the artifact."""

    file_count: int = 1
    """Number of files the artifact stands for (photos + index for folders)."""

    photos_by_section: Tuple[int, ...] = ()
    """Photos written per module, in module order (photo folders only)."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "size_bytes": self.size_bytes,
            "format": self.format.value,
            "file_count": self.file_count,
        }


@dataclass(frozen=True)
class FormatFailure:
    """A requested format that was not produced, and why."""

    format: ExportFormat
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"format": self.format.value, "message": self.message}


# =============================================================================
# PHOTOS
# =============================================================================

@dataclass(frozen=True)
class PhotoContext:
    """
    A photo plus its position in the checkup tree.

    Computed by the photo export manager while flattening the snapshot;
    never persisted.
    """

    photo: Photo
    section_index: int
    """0-based position of the module in the snapshot."""

    section_title: str
    item_id: str
    item_title: str
    item_status: CheckItemStatus
    item_criticality: CriticalityLevel
    photo_index: int
    """0-based position of the photo among the item's photos."""

    @property
    def section_ordinal(self) -> int:
        return self.section_index + 1


@dataclass(frozen=True)
class ExportedPhoto:
    """A photo written to the FOTO folder."""

    context: PhotoContext
    file_name: str
    path: str
    size_bytes: int
    original_size_bytes: int
    jpeg_quality: int
    processing_time_ms: int = 0

    @property
    def compression_ratio(self) -> float:
        """Output size divided by source size (1.0 for verbatim copies)."""
        if self.original_size_bytes <= 0:
            return 1.0
        return self.size_bytes / self.original_size_bytes


@dataclass(frozen=True)
class PhotoExportResult:
    """Outcome of one photo export run."""

    export_directory: str
    exported_photos: Tuple[ExportedPhoto, ...] = ()
    skipped: Tuple[Tuple[str, str], ...] = ()
    """(photo id, reason) for every photo that could not be exported."""

    index_file_path: Optional[str] = None

    @property
    def total_files(self) -> int:
        return len(self.exported_photos)

    @property
    def total_size_bytes(self) -> int:
        return sum(photo.size_bytes for photo in self.exported_photos)


# =============================================================================
# ESTIMATION
# =============================================================================

@dataclass(frozen=True)
class FormatEstimation:
    """Predicted cost of one format."""

    format: ExportFormat
    size_bytes: int
    time_ms: int
    file_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format.value,
            "size_bytes": self.size_bytes,
            "time_ms": self.time_ms,
            "file_count": self.file_count,
        }


@dataclass(frozen=True)
class EstimationReport:
    """Advisory size/time prediction for an export request."""

    estimations: Tuple[FormatEstimation, ...] = ()
    warnings: Tuple[str, ...] = ()
    reasoning: str = ""

    def for_format(self, export_format: ExportFormat) -> Optional[FormatEstimation]:
        for estimation in self.estimations:
            if estimation.format == export_format:
                return estimation
        return None

    @property
    def total_size_bytes(self) -> int:
        return sum(e.size_bytes for e in self.estimations)

    @property
    def total_time_ms(self) -> int:
        return sum(e.time_ms for e in self.estimations)

    @property
    def total_file_count(self) -> int:
        return sum(e.file_count for e in self.estimations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimations": [e.to_dict() for e in self.estimations],
            "total_size_bytes": self.total_size_bytes,
            "total_time_ms": self.total_time_ms,
            "total_file_count": self.total_file_count,
            "warnings": list(self.warnings),
            "reasoning": self.reasoning,
        }


# =============================================================================
# MULTI-FORMAT RESULT
# =============================================================================

@dataclass(frozen=True)
class ExportStatistics:
    """Running counters of one export."""

    sections_processed: int = 0
    items_processed: int = 0
    photos_processed: int = 0
    photos_exported: int = 0
    spare_parts_included: int = 0
    processing_time_ms: int = 0
    bytes_written: int = 0

    @property
    def processing_time_formatted(self) -> str:
        seconds = self.processing_time_ms / 1000
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, rest = divmod(int(seconds), 60)
        return f"{minutes}m {rest}s"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections_processed": self.sections_processed,
            "items_processed": self.items_processed,
            "photos_processed": self.photos_processed,
            "photos_exported": self.photos_exported,
            "spare_parts_included": self.spare_parts_included,
            "processing_time_ms": self.processing_time_ms,
            "processing_time": self.processing_time_formatted,
            "bytes_written": self.bytes_written,
        }


_PACKAGE_COMPONENTS = (
    ExportFormat.DOCUMENT,
    ExportFormat.TEXT,
    ExportFormat.PHOTO_FOLDER,
)


@dataclass(frozen=True)
class MultiFormatExportResult:
    """
    Snapshot of an export's progress and outputs.

    A new instance is emitted after every stage; the last one has
    ``is_final`` set. Callers should look at per-format completion rather
    than a single success flag.
    """

    requested_formats: Tuple[ExportFormat, ...]
    export_directory: str
    document: Optional[ExportedArtifact] = None
    text: Optional[ExportedArtifact] = None
    photo_folder: Optional[ExportedArtifact] = None
    package_index: Optional[ExportedArtifact] = None
    """INDICE_PACKAGE.txt, present only for combined packages."""

    failures: Tuple[FormatFailure, ...] = ()
    completed_stages: Tuple[ExportFormat, ...] = ()
    """Formats whose stage has finished, successfully or not."""

    progress_percent: float = 0.0
    statistics: ExportStatistics = field(default_factory=ExportStatistics)
    cancelled: bool = False
    is_final: bool = False
    generated_at: datetime = field(default_factory=datetime.now)

    def artifact_for(self, export_format: ExportFormat) -> Optional[ExportedArtifact]:
        return {
            ExportFormat.DOCUMENT: self.document,
            ExportFormat.TEXT: self.text,
            ExportFormat.PHOTO_FOLDER: self.photo_folder,
            ExportFormat.COMBINED_PACKAGE: self.package_index,
        }[export_format]

    def is_format_complete(self, export_format: ExportFormat) -> bool:
        """
        Whether ``export_format`` produced everything it promises.

        A combined package needs all three component artifacts; the package
        index alone is not enough.
        """
        if export_format == ExportFormat.COMBINED_PACKAGE:
            return all(
                self.artifact_for(component) is not None
                for component in _PACKAGE_COMPONENTS
            )
        return self.artifact_for(export_format) is not None

    @property
    def successful_formats(self) -> Tuple[ExportFormat, ...]:
        return tuple(f for f in self.requested_formats if self.is_format_complete(f))

    @property
    def incomplete_formats(self) -> Tuple[ExportFormat, ...]:
        return tuple(f for f in self.requested_formats if not self.is_format_complete(f))

    @property
    def is_complete_success(self) -> bool:
        return bool(self.requested_formats) and not self.incomplete_formats

    @property
    def has_any_output(self) -> bool:
        return bool(self.artifacts)

    @property
    def artifacts(self) -> Tuple[ExportedArtifact, ...]:
        return tuple(
            a for a in (self.document, self.text, self.photo_folder, self.package_index)
            if a is not None
        )

    @property
    def total_size_bytes(self) -> int:
        return sum(a.size_bytes for a in self.artifacts)

    @property
    def total_file_count(self) -> int:
        return sum(a.file_count for a in self.artifacts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requested_formats": [f.value for f in self.requested_formats],
            "export_directory": self.export_directory,
            "artifacts": {
                f.value: (a.to_dict() if a is not None else None)
                for f, a in (
                    (ExportFormat.DOCUMENT, self.document),
                    (ExportFormat.TEXT, self.text),
                    (ExportFormat.PHOTO_FOLDER, self.photo_folder),
                    (ExportFormat.COMBINED_PACKAGE, self.package_index),
                )
            },
            "completion": {
                f.value: self.is_format_complete(f) for f in self.requested_formats
            },
            "failures": [failure.to_dict() for failure in self.failures],
            "completed_stages": [f.value for f in self.completed_stages],
            "progress_percent": round(self.progress_percent, 1),
            "is_complete_success": self.is_complete_success,
            "total_size_bytes": self.total_size_bytes,
            "total_file_count": self.total_file_count,
            "statistics": self.statistics.to_dict(),
            "cancelled": self.cancelled,
            "is_final": self.is_final,
            "generated_at": self.generated_at.isoformat(),
        }

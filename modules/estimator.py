"""Heuristic size/time estimator for checkup exports."""

from __future__ import annotations

from typing import Dict, List

from config import Config
from models.checkup import CheckupSnapshot
from models.export_options import ExportFormat, ExportOptions, PhotoQuality
from models.export_result import EstimationReport, FormatEstimation
from logging_config import get_logger


class ExportEstimator:
    """Produces rough size and duration estimates per requested format."""

    # Document: fixed base + per embedded photo
    DOCUMENT_BASE_BYTES = 500_000
    DOCUMENT_PER_PHOTO_BYTES = 200_000
    DOCUMENT_BASE_MS = 3_000
    DOCUMENT_PER_PHOTO_MS = 300

    # Text: ~2 bytes per source character (layout, labels), never below the floor
    TEXT_BYTES_PER_CHAR = 2
    TEXT_BYTES_PER_SPARE_PART = 200
    TEXT_MIN_BYTES = 10_000
    TEXT_BASE_MS = 1_000

    # Photo folder: per-photo time; size from the average photo size
    PHOTO_FOLDER_BASE_MS = 200
    PHOTO_PER_PHOTO_MS = 500
    PHOTO_INDEX_BYTES = 5_000

    # Output size relative to the source photo
    QUALITY_SIZE_MODIFIERS = {
        PhotoQuality.ORIGINAL: 1.0,     # Verbatim copy
        PhotoQuality.OPTIMIZED: 0.4,    # Re-encoded at target width, q85
        PhotoQuality.COMPRESSED: 0.2,   # Smaller width, q70
    }

    # Combined package: index + directory overhead on top of the components
    PACKAGE_INDEX_BYTES = 10_000
    PACKAGE_DIRECTORY_BYTES = 5_000
    PACKAGE_OVERHEAD_MS = 2_000

    # Above this many verbatim photos the export gets a size warning
    MANY_ORIGINAL_PHOTOS = 50

    @classmethod
    def _get_avg_photo_bytes(cls) -> int:
        """Get average source photo size from config (allows .env override)."""
        return Config.ESTIMATOR_AVG_PHOTO_BYTES

    @classmethod
    def _get_large_export_threshold(cls) -> int:
        """Get the large-export warning threshold in bytes from config."""
        return int(Config.ESTIMATOR_LARGE_EXPORT_MB * 1024 * 1024)

    def __init__(self, max_photos_per_module: int = 4) -> None:
        self.max_photos_per_module = max_photos_per_module
        self.logger = get_logger(__name__)

    def estimate(self, snapshot: CheckupSnapshot, options: ExportOptions) -> EstimationReport:
        """
        Estimate every requested format.

        The combined package counts its three components once each; a
        component also requested on its own is estimated separately.
        """
        photo_count = snapshot.photo_count
        per_format: Dict[ExportFormat, FormatEstimation] = {}

        for export_format in options.ordered_formats:
            if export_format == ExportFormat.DOCUMENT:
                per_format[export_format] = self._estimate_document(snapshot, options)
            elif export_format == ExportFormat.TEXT:
                per_format[export_format] = self._estimate_text(snapshot)
            elif export_format == ExportFormat.PHOTO_FOLDER:
                per_format[export_format] = self._estimate_photos(photo_count, options)
            else:
                per_format[export_format] = self._estimate_package(snapshot, options)

        estimations = tuple(per_format.values())
        total_bytes = sum(e.size_bytes for e in estimations)

        self.logger.debug(
            f"Estimate for {snapshot.checkup_id[:8]}: {photo_count} photos, "
            f"{total_bytes} bytes, formats={[f.value for f in per_format]}"
        )

        return EstimationReport(
            estimations=estimations,
            warnings=tuple(self._build_warnings(snapshot, options, total_bytes)),
            reasoning=self._build_estimation_reasoning(photo_count, options),
        )

    # =========================================================================
    # PER FORMAT
    # =========================================================================

    def _estimate_document(self, snapshot: CheckupSnapshot, options: ExportOptions) -> FormatEstimation:
        embedded = 0
        if options.include_photos:
            # Only the first N photos of each module are embedded
            embedded = sum(
                min(module.photo_count, self.max_photos_per_module) for module in snapshot.modules
            )
        return FormatEstimation(
            format=ExportFormat.DOCUMENT,
            size_bytes=self.DOCUMENT_BASE_BYTES + embedded * self.DOCUMENT_PER_PHOTO_BYTES,
            time_ms=self.DOCUMENT_BASE_MS + embedded * self.DOCUMENT_PER_PHOTO_MS,
            file_count=1,
        )

    def _estimate_text(self, snapshot: CheckupSnapshot) -> FormatEstimation:
        characters = len(snapshot.header.notes)
        for item in snapshot.all_items:
            characters += len(item.description) + len(item.notes)
        for part in snapshot.spare_parts:
            characters += len(part.description) + len(part.notes)

        size = characters * self.TEXT_BYTES_PER_CHAR
        size += len(snapshot.spare_parts) * self.TEXT_BYTES_PER_SPARE_PART
        return FormatEstimation(
            format=ExportFormat.TEXT,
            size_bytes=max(size, self.TEXT_MIN_BYTES),
            time_ms=self.TEXT_BASE_MS,
            file_count=1,
        )

    def _estimate_photos(self, photo_count: int, options: ExportOptions) -> FormatEstimation:
        modifier = self.QUALITY_SIZE_MODIFIERS.get(options.photo_quality, 1.0)
        size = int(photo_count * self._get_avg_photo_bytes() * modifier)
        index = 1 if options.generate_photo_index else 0
        return FormatEstimation(
            format=ExportFormat.PHOTO_FOLDER,
            size_bytes=size + index * self.PHOTO_INDEX_BYTES,
            time_ms=self.PHOTO_FOLDER_BASE_MS + photo_count * self.PHOTO_PER_PHOTO_MS,
            file_count=photo_count + index,
        )

    def _estimate_package(self, snapshot: CheckupSnapshot, options: ExportOptions) -> FormatEstimation:
        photo_count = snapshot.photo_count
        components = (
            self._estimate_document(snapshot, options),
            self._estimate_text(snapshot),
            self._estimate_photos(photo_count, options),
        )
        return FormatEstimation(
            format=ExportFormat.COMBINED_PACKAGE,
            size_bytes=(
                sum(c.size_bytes for c in components)
                + self.PACKAGE_INDEX_BYTES
                + self.PACKAGE_DIRECTORY_BYTES
            ),
            time_ms=sum(c.time_ms for c in components) + self.PACKAGE_OVERHEAD_MS,
            file_count=sum(c.file_count for c in components) + 1,
        )

    # =========================================================================
    # EXPLANATIONS
    # =========================================================================

    def _build_estimation_reasoning(self, photo_count: int, options: ExportOptions) -> str:
        """Build human-readable reasoning for the estimate."""
        quality_desc = {
            PhotoQuality.ORIGINAL: "Photos are copied unchanged at full size.",
            PhotoQuality.OPTIMIZED: "Photos are re-encoded at the target width (about 40% of the original size).",
            PhotoQuality.COMPRESSED: "Photos are compressed (about 20% of the original size).",
        }

        reasoning_parts = [
            f"{photo_count} photo(s) in the checkup.",
            quality_desc.get(options.photo_quality, ""),
        ]
        if ExportFormat.DOCUMENT in options.formats or ExportFormat.COMBINED_PACKAGE in options.formats:
            if options.include_photos:
                reasoning_parts.append(
                    f"The document embeds up to {self.max_photos_per_module} photo(s) per module."
                )
            else:
                reasoning_parts.append("The document is text and tables only.")

        return " ".join(part for part in reasoning_parts if part)

    def _build_warnings(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        total_bytes: int,
    ) -> List[str]:
        warnings: List[str] = []
        if total_bytes > self._get_large_export_threshold():
            warnings.append(
                f"Large export (about {total_bytes // (1024 * 1024)} MB): it may be slow."
            )
        if ExportFormat.PHOTO_FOLDER in options.formats and snapshot.photo_count == 0:
            warnings.append("Photo folder requested but the checkup has no photos.")
        if (
            options.photo_quality == PhotoQuality.ORIGINAL
            and options.exports_photo_files
            and snapshot.photo_count > self.MANY_ORIGINAL_PHOTOS
        ):
            warnings.append(
                "Many photos at original quality: consider the optimized tier."
            )
        return warnings

"""
Export orchestrator.

Turns one checkup snapshot into the requested export formats.

Flow:
    1. Validate snapshot and options (all messages collected, no I/O)
    2. Storage pre-flight against the estimator's total size
    3. Prepare the destination directory
    4. Run each requested format in fixed order (document, text, photo
       folder, combined package), isolating failures per format
    5. Emit a new MultiFormatExportResult after every stage, then a final one

Cancellation is checked before each format; the photo export manager also
checks it before each photo. A cancelled export still emits a final result
listing whatever was already written.

Usage:
    orchestrator = ExportOrchestrator.create_default(export_root)

    # Streaming
    for result in orchestrator.run(snapshot, options, cancel_token):
        print(f"{result.progress_percent:.0f}%")

    # Blocking
    result = orchestrator.export(snapshot, options)
    if not result.is_complete_success:
        print(result.incomplete_formats)
"""

from __future__ import annotations

import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional

from core.cancellation import CancellationToken
from core.exceptions import (
    ExportCancelledError,
    ExportValidationError,
    FormatGenerationError,
)
from models.checkup import CheckupSnapshot
from models.export_options import ExportFormat, ExportOptions
from models.export_result import (
    EstimationReport,
    ExportedArtifact,
    ExportStatistics,
    FormatFailure,
    MultiFormatExportResult,
)
from modules import export_files
from modules.document_generator import DocumentGenerator
from modules.estimator import ExportEstimator
from modules.photo_export import PhotoExportManager
from modules.text_report import TextReportGenerator
from services.export_formats import FormatExporter, FormatOutcome, build_exporters
from logging_config import get_logger


logger = get_logger(__name__)

# MultiFormatExportResult field holding each format's artifact
_RESULT_FIELDS = {
    ExportFormat.DOCUMENT: "document",
    ExportFormat.TEXT: "text",
    ExportFormat.PHOTO_FOLDER: "photo_folder",
    ExportFormat.COMBINED_PACKAGE: "package_index",
}


class ExportOrchestrator:
    """
    Top-level coordinator for checkup exports.

    Holds no per-export state: every call to ``run`` works on its own
    directory and result, so one orchestrator can serve every job thread.
    """

    def __init__(
        self,
        export_root: Path,
        estimator: ExportEstimator,
        exporters: Mapping[ExportFormat, FormatExporter],
        storage_margin_bytes: int = 0,
    ):
        self.export_root = Path(export_root)
        self.estimator = estimator
        self.exporters = dict(exporters)
        self.storage_margin_bytes = storage_margin_bytes

    @classmethod
    def create_default(
        cls,
        export_root: Path,
        photo_max_width: int = 1920,
        max_photos_per_module: int = 4,
        storage_margin_bytes: int = 0,
    ) -> "ExportOrchestrator":
        """Wire the standard generators and exporters."""
        photo_manager = PhotoExportManager(default_max_width=photo_max_width)
        exporters = build_exporters(
            photo_manager,
            DocumentGenerator(photo_manager, max_photos_per_module=max_photos_per_module),
            TextReportGenerator(),
        )
        estimator = ExportEstimator(max_photos_per_module=max_photos_per_module)
        return cls(export_root, estimator, exporters, storage_margin_bytes)

    # =========================================================================
    # VALIDATION / ESTIMATION
    # =========================================================================

    def validate(
        self,
        snapshot: CheckupSnapshot,
        options: Optional[ExportOptions] = None,
    ) -> List[str]:
        """
        Collect every reason the snapshot (and options) cannot be exported.

        Returns:
            Validation messages; empty when the export may proceed
        """
        messages: List[str] = []
        header = snapshot.header

        if not header.island.island_type.strip():
            messages.append("Equipment type (island type) is required")
        if not header.client.company_name.strip():
            messages.append("Client name is required")
        if not header.technician.name.strip():
            messages.append("Technician name is required")

        if not snapshot.modules:
            messages.append("Checkup has no modules")
        elif not any(module.items for module in snapshot.modules):
            messages.append("Checkup has no check items in any module")

        if options is not None:
            messages.extend(options.validate())
            missing = [f.value for f in options.ordered_formats if f not in self.exporters]
            if missing:
                messages.append(f"No exporter available for: {', '.join(missing)}")

        return messages

    def estimate(self, snapshot: CheckupSnapshot, options: ExportOptions) -> EstimationReport:
        return self.estimator.estimate(snapshot, options)

    # =========================================================================
    # EXPORT
    # =========================================================================

    def run(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Iterator[MultiFormatExportResult]:
        """
        Export ``snapshot`` and yield a result after every stage.

        Validation and the storage check happen on the first ``next()``,
        before the destination directory exists.

        Raises:
            ExportValidationError: Snapshot or options invalid (nothing written)
            InsufficientStorageError: Not enough free space (nothing written)
            OSError: Destination directory could not be created
        """
        messages = self.validate(snapshot, options)
        if messages:
            logger.warning(
                f"Export of checkup {snapshot.checkup_id[:8]} rejected: {'; '.join(messages)}"
            )
            raise ExportValidationError(messages)

        estimation = self.estimate(snapshot, options)
        export_files.check_storage_space(
            self.export_root,
            estimation.total_size_bytes,
            self.storage_margin_bytes,
        )

        started_at = datetime.now()
        started = time.monotonic()
        directory = export_files.prepare_export_directory(
            self.export_root,
            snapshot,
            timestamped=options.create_timestamped_directory,
            now=started_at,
        )

        formats = options.ordered_formats
        weights = self._stage_weights(estimation, formats)
        total_weight = sum(weights.values())
        logger.info(
            f"Export of checkup {snapshot.checkup_id[:8]} started: "
            f"{[f.value for f in formats]} -> {directory}"
        )

        result = MultiFormatExportResult(
            requested_formats=formats,
            export_directory=str(directory),
        )
        photos_exported = 0
        photos_processed = 0

        for export_format in formats:
            if cancel_token is not None and cancel_token.is_cancelled:
                logger.info(f"Export cancelled before {export_format.value}")
                result = replace(result, cancelled=True)
                break

            try:
                outcome = self._run_stage(
                    export_format, snapshot, options, directory,
                    cancel_token, result, started_at,
                )
            except ExportCancelledError as e:
                logger.info(f"{e.message} ({export_format.value} stage interrupted)")
                result = replace(
                    result,
                    cancelled=True,
                    failures=result.failures + (FormatFailure(export_format, e.message),),
                )
                break
            except Exception as e:
                error = FormatGenerationError(export_format.value, str(e) or type(e).__name__)
                logger.error(error.message, exc_info=True)
                result = replace(
                    result,
                    failures=result.failures + (FormatFailure(export_format, error.message),),
                )
            else:
                photos_exported = max(photos_exported, outcome.photos_exported)
                photos_processed = max(photos_processed, outcome.photos_processed)
                result = self._apply_outcome(result, outcome)

            completed = result.completed_stages + (export_format,)
            done_weight = sum(weights[f] for f in completed)
            result = replace(
                result,
                completed_stages=completed,
                progress_percent=self._percent(done_weight, total_weight),
            )
            result = replace(
                result,
                statistics=self._statistics(snapshot, result, photos_processed, photos_exported, started),
                generated_at=datetime.now(),
            )
            logger.info(
                f"Stage {export_format.value} finished "
                f"({result.progress_percent:.0f}%, {len(result.failures)} failure(s))"
            )
            yield result

        result = replace(
            result,
            statistics=self._statistics(snapshot, result, photos_processed, photos_exported, started),
            is_final=True,
            generated_at=datetime.now(),
        )
        if result.cancelled:
            logger.info(f"Export of checkup {snapshot.checkup_id[:8]} cancelled")
        else:
            logger.info(
                f"Export of checkup {snapshot.checkup_id[:8]} finished in "
                f"{result.statistics.processing_time_formatted}: "
                f"complete={[f.value for f in result.successful_formats]}, "
                f"incomplete={[f.value for f in result.incomplete_formats]}"
            )
        yield result

    def export(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MultiFormatExportResult:
        """Run the export to the end and return the final result."""
        final = None
        for final in self.run(snapshot, options, cancel_token):
            pass
        return final

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _run_stage(
        self,
        export_format: ExportFormat,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        directory: Path,
        cancel_token: Optional[CancellationToken],
        result: MultiFormatExportResult,
        started_at: datetime,
    ) -> FormatOutcome:
        produced: Dict[ExportFormat, ExportedArtifact] = {
            f: result.artifact_for(f)
            for f in _RESULT_FIELDS
            if result.artifact_for(f) is not None
        }
        logger.info(f"Stage {export_format.value} started")
        return self.exporters[export_format].generate(
            snapshot,
            options,
            directory,
            cancel_token=cancel_token,
            produced=produced,
            started_at=started_at,
        )

    @staticmethod
    def _apply_outcome(
        result: MultiFormatExportResult,
        outcome: FormatOutcome,
    ) -> MultiFormatExportResult:
        changes = {
            _RESULT_FIELDS[export_format]: artifact
            for export_format, artifact in outcome.artifacts.items()
        }
        return replace(result, failures=result.failures + tuple(outcome.failures), **changes)

    @staticmethod
    def _stage_weights(estimation: EstimationReport, formats) -> Dict[ExportFormat, int]:
        weights = {}
        for export_format in formats:
            estimate = estimation.for_format(export_format)
            weights[export_format] = max(estimate.time_ms if estimate else 0, 1)
        return weights

    @staticmethod
    def _percent(done: int, total: int) -> float:
        if total <= 0:
            return 100.0
        return min(100.0, done * 100.0 / total)

    @staticmethod
    def _statistics(
        snapshot: CheckupSnapshot,
        result: MultiFormatExportResult,
        photos_processed: int,
        photos_exported: int,
        started: float,
    ) -> ExportStatistics:
        reports_written = result.document is not None or result.text is not None
        any_stage = bool(result.completed_stages) or result.has_any_output
        return ExportStatistics(
            sections_processed=len(snapshot.modules) if any_stage else 0,
            items_processed=len(snapshot.all_items) if any_stage else 0,
            photos_processed=photos_processed,
            photos_exported=photos_exported,
            spare_parts_included=len(snapshot.spare_parts) if reports_written else 0,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            bytes_written=result.total_size_bytes,
        )

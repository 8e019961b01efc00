"""
One exporter per ExportFormat.

The orchestrator holds a table ``{ExportFormat: FormatExporter}`` and calls
``generate`` on the entry for each requested format; there is no branching
on the format anywhere else.

Every exporter returns a FormatOutcome. Single-file formats put exactly one
artifact in it. The combined package runs the other three exporters into
the same directory (reusing artifacts already produced earlier in the same
export), writes INDICE_PACKAGE.txt, and reports components that failed
without raising.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from core.cancellation import CancellationToken
from core.exceptions import ExportCancelledError
from models.checkup import CheckupSnapshot
from models.export_options import ExportFormat, ExportOptions
from models.export_result import ExportedArtifact, FormatFailure, PhotoExportResult
from modules import export_files
from modules import text_formatter as fmt
from modules.document_generator import DocumentGenerator
from modules.photo_export import PHOTO_FOLDER_NAME, PhotoExportManager
from modules.text_report import TextReportGenerator
from logging_config import get_logger


logger = get_logger(__name__)

PACKAGE_INDEX_FILE_NAME = "INDICE_PACKAGE.txt"
DOCUMENT_WORK_DIR = ".document_work"
NOT_GENERATED = "Non generato"


@dataclass(frozen=True)
class FormatOutcome:
    """What one exporter produced."""

    artifacts: Mapping[ExportFormat, ExportedArtifact] = field(default_factory=dict)
    failures: Tuple[FormatFailure, ...] = ()
    photos_exported: int = 0
    photos_processed: int = 0
    """Photos read from their source, exported or skipped."""


class FormatExporter:
    """Base class: produce one export format inside ``directory``."""

    export_format: ExportFormat

    def generate(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        directory: Path,
        cancel_token: Optional[CancellationToken] = None,
        produced: Optional[Mapping[ExportFormat, ExportedArtifact]] = None,
        started_at: Optional[datetime] = None,
    ) -> FormatOutcome:
        """
        Args:
            snapshot: Checkup to export
            options: Export options
            directory: Destination directory (already created)
            cancel_token: Checked at unit-of-work boundaries
            produced: Artifacts already written by earlier stages
            started_at: Export start time, used in file names

        Raises:
            ExportCancelledError: If cancelled at a boundary
            Exception: Any failure; the orchestrator marks the format absent
        """
        raise NotImplementedError


# =============================================================================
# SINGLE-FILE FORMATS
# =============================================================================

class DocumentExporter(FormatExporter):
    export_format = ExportFormat.DOCUMENT

    def __init__(self, generator: DocumentGenerator):
        self.generator = generator

    def generate(self, snapshot, options, directory, cancel_token=None, produced=None, started_at=None):
        working_dir = Path(directory) / DOCUMENT_WORK_DIR
        embedded = len(self.generator.photos_to_embed(snapshot, options))
        path = Path(directory) / export_files.document_file_name(snapshot, started_at)
        try:
            document = self.generator.generate(snapshot, options, working_dir, cancel_token)
            size = self.generator.save(document, path)
        finally:
            # Scratch photos are embedded in the document by now
            shutil.rmtree(working_dir, ignore_errors=True)

        artifact = ExportedArtifact(
            path=str(path),
            name=path.name,
            size_bytes=size,
            format=self.export_format,
        )
        return FormatOutcome(artifacts={self.export_format: artifact}, photos_processed=embedded)


class TextExporter(FormatExporter):
    export_format = ExportFormat.TEXT

    def __init__(self, generator: TextReportGenerator):
        self.generator = generator

    def generate(self, snapshot, options, directory, cancel_token=None, produced=None, started_at=None):
        content = self.generator.generate(snapshot, options)
        path = Path(directory) / export_files.text_file_name(snapshot, started_at)
        path.write_text(content, encoding="utf-8")
        size = path.stat().st_size
        logger.info(f"Text report saved: {path} ({size} bytes)")

        artifact = ExportedArtifact(
            path=str(path),
            name=path.name,
            size_bytes=size,
            format=self.export_format,
        )
        return FormatOutcome(artifacts={self.export_format: artifact})


class PhotoFolderExporter(FormatExporter):
    export_format = ExportFormat.PHOTO_FOLDER

    def __init__(self, manager: PhotoExportManager):
        self.manager = manager

    def generate(self, snapshot, options, directory, cancel_token=None, produced=None, started_at=None):
        result = self.manager.export_photos(
            snapshot,
            Path(directory),
            strategy=options.naming_strategy,
            quality=options.photo_quality,
            max_width=options.photo_max_width,
            generate_index=options.generate_photo_index,
            cancel_token=cancel_token,
        )
        folder = Path(result.export_directory)
        artifact = ExportedArtifact(
            path=str(folder),
            name=PHOTO_FOLDER_NAME,
            size_bytes=export_files.directory_size(folder),
            format=self.export_format,
            file_count=result.total_files + (1 if result.index_file_path else 0),
            photos_by_section=_photos_by_section(snapshot, result),
        )
        return FormatOutcome(
            artifacts={self.export_format: artifact},
            photos_exported=result.total_files,
            photos_processed=result.total_files + len(result.skipped),
        )


def _photos_by_section(snapshot: CheckupSnapshot, result: PhotoExportResult) -> Tuple[int, ...]:
    counts = [0] * len(snapshot.modules)
    for photo in result.exported_photos:
        counts[photo.context.section_index] += 1
    return tuple(counts)


# =============================================================================
# COMBINED PACKAGE
# =============================================================================

class CombinedPackageExporter(FormatExporter):
    """Document + text + photo folder in one directory, plus INDICE_PACKAGE.txt."""

    export_format = ExportFormat.COMBINED_PACKAGE

    def __init__(
        self,
        document: DocumentExporter,
        text: TextExporter,
        photos: PhotoFolderExporter,
    ):
        self.components: Tuple[FormatExporter, ...] = (document, text, photos)

    def generate(self, snapshot, options, directory, cancel_token=None, produced=None, started_at=None):
        produced = dict(produced or {})
        artifacts: Dict[ExportFormat, ExportedArtifact] = {}
        failures = []
        photos_exported = 0
        photos_processed = 0

        for component in self.components:
            component_format = component.export_format
            if component_format in produced:
                logger.info(f"Package reuses {component_format.value} from an earlier stage")
                continue
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(f"package {component_format.value}")

            try:
                outcome = component.generate(
                    snapshot, options, directory,
                    cancel_token=cancel_token,
                    started_at=started_at,
                )
            except ExportCancelledError:
                raise
            except Exception as e:
                logger.error(f"Package component {component_format.value} failed: {e}", exc_info=True)
                failures.append(FormatFailure(component_format, str(e)))
                continue

            artifacts.update(outcome.artifacts)
            photos_exported += outcome.photos_exported
            photos_processed = max(photos_processed, outcome.photos_processed)

        available = {**produced, **artifacts}
        index = write_package_index(snapshot, Path(directory), available)
        if index is not None:
            artifacts[self.export_format] = index
        else:
            failures.append(FormatFailure(self.export_format, "Package index not written"))

        return FormatOutcome(
            artifacts=artifacts,
            failures=tuple(failures),
            photos_exported=photos_exported,
            photos_processed=photos_processed,
        )


def render_package_index(
    snapshot: CheckupSnapshot,
    artifacts: Mapping[ExportFormat, ExportedArtifact],
    now: Optional[datetime] = None,
) -> str:
    """
    Summary of the package content; missing components read "Non generato".

    Photo counts are what the photo folder actually holds; the checkup's own
    photo count appears only under STATISTICHE CHECKUP.
    """
    now = now or datetime.now()
    island = snapshot.header.island
    stats = snapshot.statistics

    def describe(export_format: ExportFormat, kind: str) -> str:
        artifact = artifacts.get(export_format)
        if artifact is None:
            return NOT_GENERATED
        return f"{artifact.name} ({kind}, {fmt.format_file_size(artifact.size_bytes)})"

    photo_folder = artifacts.get(ExportFormat.PHOTO_FOLDER)
    if photo_folder is None:
        photos_line = NOT_GENERATED
    else:
        by_section = photo_folder.photos_by_section
        if by_section:
            exported = sum(by_section)
        else:
            exported = len(list(Path(photo_folder.path).glob("*.jpg")))
        photos_line = (
            f"{PHOTO_FOLDER_NAME}/ ({exported} foto, "
            f"{fmt.format_file_size(photo_folder.size_bytes)})"
        )

    content = [
        f"Documento:      {describe(ExportFormat.DOCUMENT, 'Word')}",
        f"Report testo:   {describe(ExportFormat.TEXT, 'testo')}",
        f"Cartella foto:  {photos_line}",
    ]
    if photo_folder is not None:
        content.extend(
            f"  Modulo {n}. {module.name}: {count} foto"
            for n, (module, count) in enumerate(
                zip(snapshot.modules, photo_folder.photos_by_section), start=1
            )
        )

    statistics = [
        f"Moduli:         {len(snapshot.modules)}",
        f"Controlli:      {stats.total_items} (OK {stats.ok_count}, NOK {stats.nok_count}, "
        f"N/A {stats.na_count}, da verificare {stats.pending_count})",
        f"Foto:           {snapshot.photo_count}",
        f"Ricambi:        {len(snapshot.spare_parts)}",
        f"Completamento:  {fmt.format_percentage(stats.completion_percentage)}",
    ]

    blocks = [
        fmt.create_banner("INDICE PACKAGE CHECKUP"),
        "\n".join([
            f"Cliente:  {snapshot.client_name}",
            f"Isola:    {island.island_type}" + (f" - {island.serial_number}" if island.serial_number else ""),
            f"Tecnico:  {snapshot.technician_name}",
            f"Generato: {now:%d/%m/%Y %H:%M}",
        ]),
        fmt.create_section("CONTENUTO DEL PACKAGE", "\n".join(content)),
        fmt.create_section("STATISTICHE CHECKUP", "\n".join(statistics)),
        fmt.separator("="),
    ]
    return "\n\n".join(blocks) + "\n"


def write_package_index(
    snapshot: CheckupSnapshot,
    directory: Path,
    artifacts: Mapping[ExportFormat, ExportedArtifact],
) -> Optional[ExportedArtifact]:
    """Write INDICE_PACKAGE.txt; returns None (and logs) if it cannot be written."""
    path = directory / PACKAGE_INDEX_FILE_NAME
    try:
        path.write_text(render_package_index(snapshot, artifacts), encoding="utf-8")
        size = path.stat().st_size
    except (OSError, ValueError) as e:
        logger.warning(f"Package index not written: {e}")
        return None

    return ExportedArtifact(
        path=str(path),
        name=PACKAGE_INDEX_FILE_NAME,
        size_bytes=size,
        format=ExportFormat.COMBINED_PACKAGE,
    )


def build_exporters(
    photo_manager: PhotoExportManager,
    document_generator: DocumentGenerator,
    text_generator: TextReportGenerator,
) -> Dict[ExportFormat, FormatExporter]:
    """The format -> exporter lookup table used by the orchestrator."""
    document = DocumentExporter(document_generator)
    text = TextExporter(text_generator)
    photos = PhotoFolderExporter(photo_manager)
    return {
        ExportFormat.DOCUMENT: document,
        ExportFormat.TEXT: text,
        ExportFormat.PHOTO_FOLDER: photos,
        ExportFormat.COMBINED_PACKAGE: CombinedPackageExporter(document, text, photos),
    }


__all__ = [
    "FormatOutcome",
    "FormatExporter",
    "DocumentExporter",
    "TextExporter",
    "PhotoFolderExporter",
    "CombinedPackageExporter",
    "build_exporters",
    "render_package_index",
    "write_package_index",
]

"""
Rich document (.docx) generator.

Builds the client-facing checkup report with python-docx, in fixed order:
    1. Title block (equipment type, client, date)
    2. Information table (equipment, status, completion)
    3. Executive summary
    4. One subsection per module: check item table + up to N photos
    5. Spare parts table (only if spare parts exist)
    6. Closing footer with generation timestamp

Photos are not named or processed here: the PhotoExportManager writes them
into ``working_dir/FOTO`` and this module embeds the produced files.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from docx import Document
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import UnrecognizedImageError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor

from core.cancellation import CancellationToken
from models.checkup import CheckupSnapshot, ModuleSection
from models.export_options import ExportOptions, PhotoNamingStrategy, PhotoQuality
from models.export_result import ExportedPhoto, PhotoContext
from modules.photo_export import PhotoExportManager, collect_photo_contexts
from logging_config import get_logger


logger = get_logger(__name__)

HEADER_FILL = "1F4E79"
HEADER_TEXT = RGBColor(0xFF, 0xFF, 0xFF)

# Embedded photos never need full camera resolution
DOCUMENT_PHOTO_WIDTH_PX = 1024
PHOTO_WIDTH = Inches(4.0)

ITEM_TABLE_HEADERS = ("Controllo", "Stato", "Criticità", "Note")
SPARE_PART_HEADERS = ("Codice", "Descrizione", "Quantità", "Urgenza", "Note")


# =============================================================================
# TABLE HELPERS
# =============================================================================

def _shade_cell(cell, hex_fill: str) -> None:
    """Set the background fill of a table cell (no python-docx API for this)."""
    shading = OxmlElement("w:shd")
    shading.set(qn("w:val"), "clear")
    shading.set(qn("w:color"), "auto")
    shading.set(qn("w:fill"), hex_fill)
    cell._tc.get_or_add_tcPr().append(shading)


def _write_cell(cell, text: str, bold: bool = False, color: Optional[RGBColor] = None) -> None:
    paragraph = cell.paragraphs[0]
    run = paragraph.add_run(text)
    run.bold = bold
    if color is not None:
        run.font.color.rgb = color


def _add_table(document, headers: Sequence[str], rows: Sequence[Sequence[str]]):
    """Grid table with a dark header row; returns the table for extra styling."""
    table = document.add_table(rows=1, cols=len(headers))
    table.style = "Table Grid"
    table.alignment = WD_TABLE_ALIGNMENT.CENTER

    for cell, header in zip(table.rows[0].cells, headers):
        _write_cell(cell, header, bold=True, color=HEADER_TEXT)
        _shade_cell(cell, HEADER_FILL)

    for values in rows:
        cells = table.add_row().cells
        for cell, value in zip(cells, values):
            _write_cell(cell, value)
    return table


def _centered(document, text: str, size: int, bold: bool = False, italic: bool = False):
    paragraph = document.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = paragraph.add_run(text)
    run.bold = bold
    run.italic = italic
    run.font.size = Pt(size)
    return paragraph


# =============================================================================
# GENERATOR
# =============================================================================

class DocumentGenerator:
    """Builds the .docx checkup report."""

    def __init__(self, photo_exporter: PhotoExportManager, max_photos_per_module: int = 4):
        self.photo_exporter = photo_exporter
        self.max_photos_per_module = max_photos_per_module

    def generate(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        working_dir: Path,
        cancel_token: Optional[CancellationToken] = None,
    ):
        """
        Build the report document.

        Args:
            snapshot: Checkup to report
            options: Export options (photos and notes flags are honoured)
            working_dir: Scratch directory for photos to embed
            cancel_token: Passed to the photo export step

        Returns:
            python-docx Document, not yet saved
        """
        logger.info(f"Building document for checkup {snapshot.checkup_id[:8]}")

        document = Document()
        document.core_properties.title = f"Report checkup {snapshot.equipment_type}"
        document.core_properties.author = snapshot.technician_name
        document.core_properties.subject = snapshot.client_name

        self._add_title(document, snapshot)
        self._add_info_table(document, snapshot)
        self._add_executive_summary(document, snapshot)

        photos_by_section: Dict[int, List[ExportedPhoto]] = {}
        contexts = self.photos_to_embed(snapshot, options)
        if contexts:
            photos_by_section = self._export_photos(snapshot, options, contexts, working_dir, cancel_token)

        document.add_heading("Dettaglio Moduli", level=1)
        for section_index, module in enumerate(snapshot.modules):
            self._add_module(
                document,
                section_index,
                module,
                options,
                photos_by_section.get(section_index, []),
            )

        if snapshot.spare_parts:
            self._add_spare_parts(document, snapshot)

        self._add_footer(document, snapshot)
        return document

    def save(self, document, path: Path) -> int:
        """Save ``document`` to ``path`` and return the file size."""
        document.save(str(path))
        size = Path(path).stat().st_size
        logger.info(f"Document saved: {path} ({size} bytes)")
        return size

    def photos_to_embed(self, snapshot: CheckupSnapshot, options: ExportOptions) -> List[PhotoContext]:
        """The first ``max_photos_per_module`` photos of each module, or none."""
        if not options.include_photos:
            return []
        per_section: Dict[int, int] = defaultdict(int)
        selected = []
        for context in collect_photo_contexts(snapshot):
            if per_section[context.section_index] < self.max_photos_per_module:
                per_section[context.section_index] += 1
                selected.append(context)
        return selected

    # =========================================================================
    # SECTIONS
    # =========================================================================

    def _add_title(self, document, snapshot: CheckupSnapshot) -> None:
        _centered(document, f"REPORT CHECKUP {snapshot.equipment_type.upper()}", 18, bold=True)
        _centered(document, snapshot.client_name, 14, bold=True)
        checkup_date = snapshot.header.checkup_date or snapshot.completed_at or snapshot.generated_at
        _centered(document, f"Data: {checkup_date:%d/%m/%Y}", 11)

    def _add_info_table(self, document, snapshot: CheckupSnapshot) -> None:
        header = snapshot.header
        rows = [
            ("Cliente", header.client.company_name),
            ("Sito", header.client.site or "-"),
            ("Tipo isola", header.island.island_type),
            ("Numero di serie", header.island.serial_number or "-"),
            ("Modello", header.island.model or "-"),
            ("Ore di funzionamento", f"{header.island.operating_hours} h"),
            ("Tecnico", header.technician.name),
            ("Stato checkup", snapshot.status.display_name),
            ("Completamento", f"{snapshot.statistics.completion_percentage:.1f}%"),
        ]
        document.add_heading("Informazioni Checkup", level=1)
        _add_table(document, ("Campo", "Valore"), rows)

    def _add_executive_summary(self, document, snapshot: CheckupSnapshot) -> None:
        stats = snapshot.statistics
        document.add_heading("Riepilogo Esecutivo", level=1)
        document.add_paragraph(
            f"Sono stati eseguiti {stats.total_items} controlli: "
            f"{stats.ok_count} OK ({stats.percentage_of(stats.ok_count):.1f}%), "
            f"{stats.nok_count} NOK ({stats.percentage_of(stats.nok_count):.1f}%), "
            f"{stats.na_count} N/A ({stats.percentage_of(stats.na_count):.1f}%), "
            f"{stats.pending_count} da verificare."
        )
        if stats.critical_count:
            paragraph = document.add_paragraph()
            run = paragraph.add_run(
                f"Attenzione: {stats.critical_count} criticità richiedono intervento immediato."
            )
            run.bold = True
            run.font.color.rgb = RGBColor.from_string("FF0000")
        elif stats.important_count:
            document.add_paragraph(
                f"Presenti {stats.important_count} anomalie importanti da monitorare."
            )
        if snapshot.header.notes:
            document.add_paragraph(f"Note generali: {snapshot.header.notes}")

    def _add_module(
        self,
        document,
        section_index: int,
        module: ModuleSection,
        options: ExportOptions,
        photos: Sequence[ExportedPhoto],
    ) -> None:
        document.add_heading(f"{section_index + 1}. {module.name}", level=2)

        rows = [
            (
                item.description,
                item.status.display_name,
                item.criticality.display_name,
                item.notes if options.include_notes else "",
            )
            for item in module.items
        ]
        table = _add_table(document, ITEM_TABLE_HEADERS, rows)

        # Colour the status column
        for row, item in zip(table.rows[1:], module.items):
            for run in row.cells[1].paragraphs[0].runs:
                run.bold = True
                run.font.color.rgb = RGBColor.from_string(item.status.report_color)

        for photo in photos:
            self._add_photo(document, photo)

        remaining = module.photo_count - self.max_photos_per_module
        if remaining > 0:
            _centered(
                document,
                f"Altre {remaining} foto nella cartella FOTO",
                9,
                italic=True,
            )

    def _add_photo(self, document, photo: ExportedPhoto) -> None:
        try:
            document.add_picture(photo.path, width=PHOTO_WIDTH)
        except (OSError, UnrecognizedImageError) as e:
            logger.warning(f"Cannot embed photo {photo.file_name}: {e}")
            return
        document.paragraphs[-1].alignment = WD_ALIGN_PARAGRAPH.CENTER

        context = photo.context
        caption = context.photo.caption or f"{context.item_title} - foto {context.photo_index + 1}"
        _centered(document, caption, 10, italic=True)

    def _add_spare_parts(self, document, snapshot: CheckupSnapshot) -> None:
        document.add_heading("Ricambi Necessari", level=1)
        parts = sorted(snapshot.spare_parts, key=lambda part: part.urgency.rank)
        rows = [
            (
                part.part_number,
                part.description,
                str(part.quantity),
                part.urgency.display_name,
                part.notes,
            )
            for part in parts
        ]
        _add_table(document, SPARE_PART_HEADERS, rows)

    def _add_footer(self, document, snapshot: CheckupSnapshot) -> None:
        document.add_paragraph()
        _centered(
            document,
            f"Report generato da QReport il {datetime.now():%d/%m/%Y %H:%M} - "
            f"Tecnico: {snapshot.technician_name}",
            10,
        )

    # =========================================================================
    # PHOTOS
    # =========================================================================

    def _export_photos(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
        contexts: Sequence[PhotoContext],
        working_dir: Path,
        cancel_token: Optional[CancellationToken],
    ) -> Dict[int, List[ExportedPhoto]]:
        result = self.photo_exporter.export_photos(
            snapshot,
            working_dir,
            strategy=PhotoNamingStrategy.STRUCTURED,
            quality=PhotoQuality.OPTIMIZED,
            max_width=min(options.photo_max_width, DOCUMENT_PHOTO_WIDTH_PX),
            generate_index=False,
            cancel_token=cancel_token,
            contexts=contexts,
        )
        grouped: Dict[int, List[ExportedPhoto]] = defaultdict(list)
        for photo in result.exported_photos:
            grouped[photo.context.section_index].append(photo)
        return grouped

"""
Plain-text checkup report.

Produces one self-contained, 80-column text block. The orchestrator writes
it to disk; this module does no I/O.

Layout:
    header banner
    INFORMAZIONI GENERALI      (table)
    RIEPILOGO ESECUTIVO        (counts, percentages)
    DETTAGLIO CONTROLLI        (one block per module, bulleted items)
    PARTI DI RICAMBIO          (grouped by urgency, if any)
    CONCLUSIONI                (actions, next checkup, sign-off)
    footer                     (aggregate counts + completion progress bar)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from itertools import groupby
from typing import Dict, List, Optional, Tuple

from models.checkup import (
    CheckItem,
    CheckItemStatus,
    CheckupSnapshot,
    CheckupStatistics,
    CriticalityLevel,
    ModuleSection,
)
from models.export_options import ExportOptions
from modules import text_formatter as fmt
from modules.photo_export import collect_photo_contexts, plan_file_names
from logging_config import get_logger


logger = get_logger(__name__)

WIDTH = fmt.DEFAULT_LINE_WIDTH
LABEL_WIDTH = 22
APP_SIGNATURE = "QReport"


@dataclass
class Recommendations:
    """Conclusions drawn from the statistics."""

    immediate_actions: List[str] = field(default_factory=list)
    general: List[str] = field(default_factory=list)
    next_checkup: date = field(default_factory=date.today)
    next_checkup_reason: str = ""


def overall_status_text(stats: CheckupStatistics) -> str:
    ok_percentage = stats.percentage_of(stats.ok_count)
    if stats.critical_count > 0:
        return "CRITICO - Intervento immediato richiesto"
    if stats.nok_count > stats.total_items * 0.1:
        return "ATTENZIONE - Problemi rilevati"
    if ok_percentage >= 95.0:
        return "OTTIMO - Sistema in perfette condizioni"
    if ok_percentage >= 85.0:
        return "BUONO - Sistema funzionale"
    return "SUFFICIENTE - Monitoraggio richiesto"


def item_action(item: CheckItem) -> str:
    """Suggested action for a single check item ("" when none is needed)."""
    if item.is_critical_failure:
        return "Intervento immediato necessario"
    if item.is_failed and item.criticality == CriticalityLevel.IMPORTANT:
        return "Programmare sostituzione"
    if item.is_failed:
        return "Monitorare nelle prossime verifiche"
    return ""


def build_recommendations(snapshot: CheckupSnapshot, today: Optional[date] = None) -> Recommendations:
    """
    Immediate actions, general advice and the suggested next checkup date.

    Next checkup:
        critical failures     -> 2 weeks
        more than 15% failed  -> 1 month
        at least 95% OK       -> 6 months
        otherwise             -> 3 months
    """
    today = today or date.today()
    stats = snapshot.statistics
    recommendations = Recommendations()

    if stats.critical_count:
        recommendations.immediate_actions.append(
            f"Risolvere immediatamente {stats.critical_count} anomalie critiche"
        )
    urgent_parts = [p for p in snapshot.spare_parts if p.urgency.rank == 0]
    if urgent_parts:
        recommendations.immediate_actions.append(
            f"Ordinare {len(urgent_parts)} ricambi con urgenza immediata"
        )
    nok_percentage = stats.percentage_of(stats.nok_count)
    if nok_percentage > 10:
        recommendations.general.append(
            f"Programmare manutenzione straordinaria - {stats.nok_count} controlli falliti"
        )
    if stats.pending_count:
        recommendations.general.append(
            f"Completare {stats.pending_count} controlli ancora da verificare"
        )
    if snapshot.photo_count > 50:
        recommendations.general.append("Archiviare le foto del checkup per lo storico manutenzioni")

    if stats.critical_count:
        recommendations.next_checkup = today + timedelta(weeks=2)
        recommendations.next_checkup_reason = "Verifica risoluzione criticità"
    elif nok_percentage > 15:
        recommendations.next_checkup = today + timedelta(days=30)
        recommendations.next_checkup_reason = "Monitoraggio problemi rilevati"
    elif stats.percentage_of(stats.ok_count) >= 95:
        recommendations.next_checkup = today + timedelta(days=182)
        recommendations.next_checkup_reason = "Manutenzione preventiva standard"
    else:
        recommendations.next_checkup = today + timedelta(days=91)
        recommendations.next_checkup_reason = "Controllo periodico raccomandato"
    return recommendations


class TextReportGenerator:
    """Renders a CheckupSnapshot as a plain-text report."""

    def generate(self, snapshot: CheckupSnapshot, options: ExportOptions) -> str:
        """
        Build the report text.

        Args:
            snapshot: Checkup to report
            options: ``include_notes`` and ``include_photos`` are honoured;
                photo file names follow ``naming_strategy``

        Returns:
            Report text, newline-terminated
        """
        photo_names = self._photo_names(snapshot, options) if options.include_photos else {}

        blocks = [
            fmt.create_banner("REPORT CHECKUP INDUSTRIALE"),
            self._general_info(snapshot),
            self._executive_summary(snapshot),
            fmt.create_banner("DETTAGLIO CONTROLLI"),
        ]
        for section_index, module in enumerate(snapshot.modules):
            blocks.append(self._module_block(section_index, module, options, photo_names))

        if snapshot.spare_parts:
            blocks.append(self._spare_parts(snapshot))

        blocks.append(self._conclusions(snapshot))
        blocks.append(self._footer(snapshot))

        report = "\n\n".join(blocks) + "\n"
        logger.debug(f"Text report built: {len(report)} characters")
        return report

    # =========================================================================
    # BLOCKS
    # =========================================================================

    def _photo_names(
        self,
        snapshot: CheckupSnapshot,
        options: ExportOptions,
    ) -> Dict[str, List[Tuple[str, str]]]:
        """(file name, caption) per check item id, same names as the FOTO folder."""
        contexts = collect_photo_contexts(snapshot)
        names = plan_file_names(contexts, options.naming_strategy)
        by_item: Dict[str, List[Tuple[str, str]]] = {}
        for context, name in zip(contexts, names):
            by_item.setdefault(context.item_id, []).append((name, context.photo.caption))
        return by_item

    def _general_info(self, snapshot: CheckupSnapshot) -> str:
        header = snapshot.header
        rows = [
            ("Cliente", header.client.company_name),
            ("Contatto", header.client.contact_person),
            ("Sito", header.client.site),
            ("Indirizzo", header.client.address),
            ("Tipo isola", header.island.island_type),
            ("Numero di serie", header.island.serial_number),
            ("Modello", header.island.model),
            ("Ore funzionamento", f"{header.island.operating_hours} h" if header.island.operating_hours else ""),
            ("Cicli", str(header.island.cycle_count) if header.island.cycle_count else ""),
            ("Tecnico", header.technician.name),
            ("Azienda tecnico", header.technician.company),
            ("Stato checkup", snapshot.status.display_name),
        ]
        if snapshot.created_at:
            rows.append(("Inizio", f"{snapshot.created_at:%d/%m/%Y %H:%M}"))
        if snapshot.created_at and snapshot.completed_at:
            elapsed = int((snapshot.completed_at - snapshot.created_at).total_seconds() * 1000)
            rows.append(("Durata", fmt.format_duration(max(elapsed, 0))))

        table = fmt.create_table(
            ("Campo", "Valore"),
            [(label, fmt.truncate_text(value, WIDTH - LABEL_WIDTH - 7)) for label, value in rows if value],
            column_widths=(LABEL_WIDTH, WIDTH - LABEL_WIDTH - 7),
        )
        content = table
        if header.notes:
            content += "\n\nNote generali:\n" + fmt.wrap_text(header.notes, WIDTH, indent="  ")
        return fmt.create_section("INFORMAZIONI GENERALI", content)

    def _executive_summary(self, snapshot: CheckupSnapshot) -> str:
        stats = snapshot.statistics

        def line(label: str, value: str) -> str:
            return f"{fmt.left_align(label + ':', LABEL_WIDTH)}{value}"

        lines = [
            line("Stato generale", overall_status_text(stats)),
            line("Controlli totali", str(stats.total_items)),
            line("Controlli OK", f"{stats.ok_count} ({fmt.format_percentage(stats.percentage_of(stats.ok_count))})"),
            line("Controlli NOK", f"{stats.nok_count} ({fmt.format_percentage(stats.percentage_of(stats.nok_count))})"),
            line("Controlli N/A", f"{stats.na_count} ({fmt.format_percentage(stats.percentage_of(stats.na_count))})"),
            line("Da verificare", str(stats.pending_count)),
            line("Criticità rilevate", str(stats.critical_count)),
            line("Anomalie importanti", str(stats.important_count)),
            line("Foto acquisite", str(snapshot.photo_count)),
        ]
        modules_with_issues = sum(
            1 for module in snapshot.modules if any(item.is_failed for item in module.items)
        )
        if modules_with_issues:
            lines.append(line("Moduli con problemi", f"{modules_with_issues}/{len(snapshot.modules)}"))
        return fmt.create_section("RIEPILOGO ESECUTIVO", "\n".join(lines))

    def _module_block(
        self,
        section_index: int,
        module: ModuleSection,
        options: ExportOptions,
        photo_names: Dict[str, List[Tuple[str, str]]],
    ) -> str:
        items = module.items
        ok = sum(1 for item in items if item.status == CheckItemStatus.OK)
        nok = sum(1 for item in items if item.is_failed)
        critical = sum(1 for item in items if item.criticality == CriticalityLevel.CRITICAL)

        lines = [
            f"Controlli: {len(items)}  |  OK: {ok}  |  NOK: {nok}  |  Critici: {critical}",
            "",
        ]
        for item in items:
            lines.append(f"  • [{item.status.display_name}] {item.description}")
            if item.item_code:
                lines.append(f"      Codice:    {item.item_code}")
            lines.append(f"      Criticità: {item.criticality.display_name}")
            if options.include_notes and item.notes:
                lines.append(fmt.wrap_text(f"Note: {item.notes}", WIDTH, indent="      "))
            if options.include_photos and item.photos:
                lines.append(f"      Foto:      {len(item.photos)}")
                for name, caption in photo_names.get(item.id, []):
                    suffix = f'  "{caption}"' if caption else ""
                    lines.append(f"        - {name}{suffix}")
            action = item_action(item)
            if action:
                lines.append(f"      Azione:    {action}")

        title = f"MODULO {section_index + 1}: {module.name.upper()}"
        return fmt.create_section(title, "\n".join(lines))

    def _spare_parts(self, snapshot: CheckupSnapshot) -> str:
        parts = sorted(snapshot.spare_parts, key=lambda part: part.urgency.rank)
        blocks = [fmt.create_banner("PARTI DI RICAMBIO")]
        for urgency, group in groupby(parts, key=lambda part: part.urgency):
            rows = [
                (part.part_number, part.description, str(part.quantity), part.notes)
                for part in group
            ]
            table = fmt.create_table(
                ("Codice", "Descrizione", "Qtà", "Note"),
                rows,
                column_widths=(12, 30, 4, 19),
            )
            blocks.append(fmt.create_section(f"Urgenza {urgency.display_name.upper()}", table))

        total_cost = sum(p.estimated_cost * p.quantity for p in parts if p.estimated_cost)
        if total_cost:
            blocks.append(f"Costo stimato complessivo: € {total_cost:.2f}")
        return "\n\n".join(blocks)

    def _conclusions(self, snapshot: CheckupSnapshot) -> str:
        recommendations = build_recommendations(snapshot)
        blocks = [fmt.create_banner("CONCLUSIONI")]
        if recommendations.immediate_actions:
            blocks.append(fmt.create_section(
                "AZIONI IMMEDIATE RICHIESTE",
                fmt.create_bullet_list(recommendations.immediate_actions, bullet="-"),
            ))
        if recommendations.general:
            blocks.append(fmt.create_section(
                "RACCOMANDAZIONI GENERALI",
                fmt.create_bullet_list(recommendations.general, bullet="-"),
            ))
        blocks.append(fmt.create_section(
            "PROSSIMO CHECKUP CONSIGLIATO",
            f"Data suggerita: {recommendations.next_checkup:%d/%m/%Y}\n"
            f"Motivazione:    {recommendations.next_checkup_reason}",
        ))
        blocks.append(fmt.create_section(
            "VALIDAZIONE TECNICA",
            f"Tecnico:      {snapshot.technician_name}\n"
            f"Data report:  {datetime.now():%d/%m/%Y %H:%M}\n"
            f"Firma:        ____________________",
        ))
        return "\n\n".join(blocks)

    def _footer(self, snapshot: CheckupSnapshot) -> str:
        stats = snapshot.statistics
        summary = (
            f"Moduli: {len(snapshot.modules)}  |  Controlli: {stats.total_items}  |  "
            f"Foto: {snapshot.photo_count}  |  Ricambi: {len(snapshot.spare_parts)}"
        )
        return "\n".join([
            fmt.separator("="),
            fmt.center_text(summary, WIDTH).rstrip(),
            "Completamento: " + fmt.create_progress_bar(stats.completed_items, stats.total_items, width=40),
            f"Report generato da {APP_SIGNATURE} il {datetime.now():%d/%m/%Y %H:%M:%S}",
            fmt.separator("="),
        ])

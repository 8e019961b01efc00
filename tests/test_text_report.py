"""
Unit tests for the plain-text report and its recommendations.
"""

import re
from dataclasses import replace
from datetime import date, timedelta

import pytest

from models.checkup import CheckItem, CheckItemStatus, CriticalityLevel, ModuleSection
from models.export_options import ExportOptions, PhotoNamingStrategy
from modules.photo_export import PhotoExportManager
from modules.text_report import (
    TextReportGenerator,
    build_recommendations,
    item_action,
    overall_status_text,
)
from modules.snapshot_mapper import compute_statistics
from tests.conftest import build_snapshot


PHOTO_LINE = re.compile(r"^        - (\S+\.jpg)")


@pytest.fixture
def generator():
    return TextReportGenerator()


def _items(*statuses, criticality=CriticalityLevel.ROUTINE):
    return tuple(
        CheckItem(id=f"i{n}", description=f"Controllo {n}", status=status, criticality=criticality)
        for n, status in enumerate(statuses)
    )


class TestTextReport:

    def test_sections_in_order(self, generator, sample_snapshot):
        report = generator.generate(sample_snapshot, ExportOptions())

        headings = [
            "REPORT CHECKUP INDUSTRIALE",
            "INFORMAZIONI GENERALI",
            "RIEPILOGO ESECUTIVO",
            "DETTAGLIO CONTROLLI",
            "MODULO 1: SICUREZZA",
            "MODULO 2: QUALITÀ SALDATURA",
            "PARTI DI RICAMBIO",
            "CONCLUSIONI",
            "PROSSIMO CHECKUP CONSIGLIATO",
        ]
        positions = [report.index(heading) for heading in headings]
        assert positions == sorted(positions)
        assert report.endswith("\n")

    def test_items_and_actions(self, generator, sample_snapshot):
        report = generator.generate(sample_snapshot, ExportOptions())

        assert "  • [NOK] Pulsante di emergenza" in report
        assert "Azione:    Programmare sostituzione" in report
        assert "Codice:    SIC-01" in report
        assert "Urgenza ALTA" in report
        assert "Costo stimato complessivo: € 48.50" in report

    def test_notes_toggle(self, generator, sample_snapshot):
        with_notes = generator.generate(sample_snapshot, ExportOptions())
        without_notes = generator.generate(sample_snapshot, ExportOptions(include_notes=False))

        assert "Ritorno lento del fungo" in with_notes
        assert "Ritorno lento del fungo" not in without_notes

    def test_photos_hidden_when_excluded(self, generator, sample_snapshot):
        report = generator.generate(sample_snapshot, ExportOptions(include_photos=False))

        assert not any(PHOTO_LINE.match(line) for line in report.splitlines())
        assert "Foto:      2" not in report

    @pytest.mark.parametrize("strategy", list(PhotoNamingStrategy))
    def test_photo_names_match_photo_folder(self, generator, sample_snapshot, tmp_path, strategy):
        options = ExportOptions(naming_strategy=strategy)
        report = generator.generate(sample_snapshot, options)
        exported = PhotoExportManager(default_max_width=320).export_photos(
            sample_snapshot, tmp_path, strategy=strategy
        )

        listed = [m.group(1) for m in map(PHOTO_LINE.match, report.splitlines()) if m]
        assert listed == [photo.file_name for photo in exported.exported_photos]

    def test_footer_progress(self, generator, sample_snapshot):
        report = generator.generate(sample_snapshot, ExportOptions())

        assert "Completamento: [" in report
        assert "100% (3/3)" in report
        assert "Report generato da QReport il" in report


class TestRecommendations:

    TODAY = date(2025, 3, 14)

    def test_critical_failure_means_two_weeks(self):
        snapshot = build_snapshot((ModuleSection("M", _items(
            CheckItemStatus.NOK, CheckItemStatus.OK, criticality=CriticalityLevel.CRITICAL
        )),))

        recommendations = build_recommendations(snapshot, today=self.TODAY)

        assert recommendations.next_checkup == self.TODAY + timedelta(weeks=2)
        assert recommendations.immediate_actions == ["Risolvere immediatamente 1 anomalie critiche"]

    def test_many_failures_means_one_month(self):
        statuses = (CheckItemStatus.NOK,) * 2 + (CheckItemStatus.OK,) * 8
        snapshot = build_snapshot((ModuleSection("M", _items(*statuses)),))

        recommendations = build_recommendations(snapshot, today=self.TODAY)

        assert recommendations.next_checkup == self.TODAY + timedelta(days=30)
        assert any("manutenzione straordinaria" in r for r in recommendations.general)

    def test_all_ok_means_six_months(self):
        snapshot = build_snapshot((ModuleSection("M", _items(*(CheckItemStatus.OK,) * 20)),))

        recommendations = build_recommendations(snapshot, today=self.TODAY)

        assert recommendations.next_checkup == self.TODAY + timedelta(days=182)
        assert recommendations.immediate_actions == []

    def test_otherwise_three_months(self):
        statuses = (CheckItemStatus.OK,) * 8 + (CheckItemStatus.NA,) * 2
        snapshot = build_snapshot((ModuleSection("M", _items(*statuses)),))

        recommendations = build_recommendations(snapshot, today=self.TODAY)

        assert recommendations.next_checkup == self.TODAY + timedelta(days=91)

    def test_pending_items_are_mentioned(self):
        snapshot = build_snapshot((ModuleSection("M", _items(CheckItemStatus.PENDING)),))

        recommendations = build_recommendations(snapshot, today=self.TODAY)

        assert "Completare 1 controlli ancora da verificare" in recommendations.general


class TestStatusHelpers:

    def test_overall_status(self):
        critical = compute_statistics((ModuleSection("M", _items(
            CheckItemStatus.NOK, criticality=CriticalityLevel.CRITICAL
        )),))
        perfect = compute_statistics((ModuleSection("M", _items(CheckItemStatus.OK)),))

        assert overall_status_text(critical).startswith("CRITICO")
        assert overall_status_text(perfect).startswith("OTTIMO")

    def test_item_action(self):
        item = CheckItem(id="x", description="d", status=CheckItemStatus.NOK)
        assert item_action(item) == "Monitorare nelle prossime verifiche"
        assert item_action(replace(item, criticality=CriticalityLevel.CRITICAL)) == (
            "Intervento immediato necessario"
        )
        assert item_action(replace(item, status=CheckItemStatus.OK)) == ""

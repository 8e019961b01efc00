"""
Unit tests for record <-> snapshot conversion and the option/result models.
"""

import pytest

from models.checkup import (
    CheckItemStatus,
    CheckupStatus,
    CriticalityLevel,
    SparePartUrgency,
)
from models.export_options import ExportFormat, ExportOptions, PhotoQuality
from models.export_result import ExportedArtifact, MultiFormatExportResult
from modules.snapshot_mapper import (
    compute_statistics,
    resolve_photo_paths,
    snapshot_from_dict,
    snapshot_to_dict,
)


# Fixtures

@pytest.fixture
def camel_record():
    """Record as sent by the mobile app (camelCase keys)."""
    return {
        "checkupId": "a1b2c3d4-0000-4000-8000-000000000001",
        "status": "completed",
        "header": {
            "clientInfo": {"companyName": " Officine Verdi ", "site": "Reparto 3"},
            "technicianInfo": {"name": "Luca Neri"},
            "islandInfo": {"islandType": "POLY Move", "operatingHours": "8400"},
            "checkupDate": "2025-02-01T08:15:00",
        },
        "itemsByModule": {
            "Pneumatica": [
                {
                    "id": "p-1",
                    "description": "Pressione linea",
                    "status": "NOK",
                    "criticality": "CRITICAL",
                    "photos": [{"filePath": "/data/IMG_1.jpg", "caption": "Manometro"}],
                },
                {"description": "Perdite", "status": "BROKEN", "criticality": "???"},
            ],
        },
        "spareParts": [{"partNumber": "V-10", "description": "Valvola", "urgency": "immediate"}],
    }


class TestSnapshotFromDict:

    def test_camel_case_record(self, camel_record):
        snapshot = snapshot_from_dict(camel_record)

        assert snapshot.checkup_id.startswith("a1b2c3d4")
        assert snapshot.client_name == "Officine Verdi"
        assert snapshot.technician_name == "Luca Neri"
        assert snapshot.equipment_type == "POLY Move"
        assert snapshot.header.island.operating_hours == 8400
        assert snapshot.status == CheckupStatus.COMPLETED
        assert [m.name for m in snapshot.modules] == ["Pneumatica"]
        assert snapshot.modules[0].items[0].photos[0].caption == "Manometro"
        assert snapshot.spare_parts[0].urgency == SparePartUrgency.IMMEDIATE

    def test_unknown_enums_fall_back(self, camel_record):
        item = snapshot_from_dict(camel_record).modules[0].items[1]

        assert item.status == CheckItemStatus.PENDING
        assert item.criticality == CriticalityLevel.ROUTINE
        assert item.id == "m1-item-2"

    def test_statistics_computed_when_missing(self, camel_record):
        stats = snapshot_from_dict(camel_record).statistics

        assert stats.total_items == 2
        assert stats.nok_count == 1
        assert stats.pending_count == 1
        assert stats.critical_count == 1

    def test_missing_status_means_draft(self, camel_record):
        del camel_record["status"]
        assert snapshot_from_dict(camel_record).status == CheckupStatus.DRAFT

    def test_missing_id_rejected(self, camel_record):
        del camel_record["checkupId"]
        with pytest.raises(ValueError, match="no id"):
            snapshot_from_dict(camel_record)

    def test_non_mapping_rejected(self):
        with pytest.raises(ValueError):
            snapshot_from_dict(["not", "a", "record"])

    def test_to_dict_and_back(self, sample_snapshot):
        assert snapshot_from_dict(snapshot_to_dict(sample_snapshot)) == sample_snapshot


class TestResolvePhotoPaths:

    def test_paths_inside_root_are_kept(self, sample_snapshot, photo_dir):
        resolved = resolve_photo_paths(sample_snapshot, photo_dir)

        assert [p.file_path for p in resolved.modules[0].items[0].photos] == [
            str((photo_dir / "IMG_0001.jpg").resolve()),
            str((photo_dir / "IMG_0002.jpg").resolve()),
        ]

    def test_relative_paths_resolved_against_root(self, photo_dir):
        record = {
            "id": "c-1",
            "modules": [{"name": "M", "items": [{"id": "i", "photos": [{"id": "p", "file_path": "IMG_0001.jpg"}]}]}],
        }

        resolved = resolve_photo_paths(snapshot_from_dict(record), photo_dir)

        assert resolved.modules[0].items[0].photos[0].file_path == str((photo_dir / "IMG_0001.jpg").resolve())

    @pytest.mark.parametrize("file_path", ["/etc/passwd", "../secrets/key.jpg"])
    def test_paths_outside_root_rejected(self, photo_dir, file_path):
        record = {
            "id": "c-1",
            "modules": [{"name": "M", "items": [{"id": "i", "photos": [{"id": "p-9", "file_path": file_path}]}]}],
        }

        with pytest.raises(ValueError, match="p-9"):
            resolve_photo_paths(snapshot_from_dict(record), photo_dir)


class TestStatistics:

    def test_counts(self, sample_snapshot):
        stats = compute_statistics(sample_snapshot.modules)

        assert (stats.total_items, stats.ok_count, stats.nok_count, stats.na_count) == (3, 1, 1, 1)
        assert stats.important_count == 1
        assert stats.critical_count == 0
        assert stats.completion_percentage == 100.0

    def test_empty(self):
        stats = compute_statistics(())
        assert stats.completion_percentage == 0.0
        assert stats.percentage_of(0) == 0.0


class TestExportOptions:

    def test_processing_order(self):
        options = ExportOptions(formats=frozenset({ExportFormat.COMBINED_PACKAGE, ExportFormat.DOCUMENT}))
        assert options.ordered_formats == (ExportFormat.DOCUMENT, ExportFormat.COMBINED_PACKAGE)

    def test_validate(self):
        assert ExportOptions().validate() == []
        errors = ExportOptions(formats=frozenset(), photo_max_width=0).validate()
        assert len(errors) == 2

    def test_photo_folder_needs_photos(self):
        options = ExportOptions(formats=frozenset({ExportFormat.PHOTO_FOLDER}), include_photos=False)
        assert options.validate() == ["Photo folder export requires photos to be included"]

    def test_from_dict(self):
        options = ExportOptions.from_dict({
            "formats": ["text", "photo_folder"],
            "photo_quality": "compressed",
            "photo_max_width": "800",
        })
        assert options.formats == {ExportFormat.TEXT, ExportFormat.PHOTO_FOLDER}
        assert options.photo_quality == PhotoQuality.COMPRESSED
        assert options.photo_max_width == 800
        assert ExportOptions.from_dict(options.to_dict()) == options

    def test_from_dict_unknown_format(self):
        with pytest.raises(ValueError):
            ExportOptions.from_dict({"formats": ["pdf"]})


class TestMultiFormatExportResult:

    @staticmethod
    def _artifact(export_format):
        return ExportedArtifact(path=f"/x/{export_format.value}", name=export_format.value,
                                size_bytes=10, format=export_format)

    def test_combined_needs_every_component(self):
        result = MultiFormatExportResult(
            requested_formats=(ExportFormat.COMBINED_PACKAGE,),
            export_directory="/x",
            document=self._artifact(ExportFormat.DOCUMENT),
            text=self._artifact(ExportFormat.TEXT),
            package_index=self._artifact(ExportFormat.COMBINED_PACKAGE),
        )

        assert not result.is_format_complete(ExportFormat.COMBINED_PACKAGE)
        assert result.incomplete_formats == (ExportFormat.COMBINED_PACKAGE,)
        assert not result.is_complete_success
        assert result.has_any_output

    def test_complete(self):
        result = MultiFormatExportResult(
            requested_formats=(ExportFormat.DOCUMENT, ExportFormat.TEXT),
            export_directory="/x",
            document=self._artifact(ExportFormat.DOCUMENT),
            text=self._artifact(ExportFormat.TEXT),
        )

        assert result.is_complete_success
        assert result.total_size_bytes == 20
        assert result.to_dict()["completion"] == {"document": True, "text": True}

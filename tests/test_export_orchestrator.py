"""
Integration tests for ExportOrchestrator.

These run the real generators against Pillow-made photos in tmp_path and
inspect what ends up on disk.
"""

import re
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from core.cancellation import CancellationToken
from core.exceptions import ExportValidationError, InsufficientStorageError
from models.export_options import ExportFormat, ExportOptions, PhotoNamingStrategy
from models.export_result import ExportedArtifact
from services.export_formats import (
    DOCUMENT_WORK_DIR,
    PACKAGE_INDEX_FILE_NAME,
    DocumentExporter,
    PhotoFolderExporter,
    TextExporter,
    render_package_index,
)
from tests.conftest import build_snapshot


def _options(*formats, **kwargs):
    return ExportOptions(formats=frozenset(formats), **kwargs)


class TestCombinedPackage:

    def test_complete_package_on_disk(self, orchestrator, sample_snapshot):
        result = orchestrator.export(sample_snapshot, ExportOptions.complete_package())
        directory = Path(result.export_directory)

        assert result.is_final
        assert result.is_complete_success
        assert result.failures == ()

        photos = sorted(p.name for p in (directory / "FOTO").glob("*.jpg"))
        assert len(photos) == 2
        assert (directory / "FOTO" / "INDICE_FOTO.txt").is_file()
        assert len(list(directory.glob("*.docx"))) == 1
        assert len(list(directory.glob("*.txt"))) == 2  # report + package index
        assert not (directory / DOCUMENT_WORK_DIR).exists()

        index = (directory / PACKAGE_INDEX_FILE_NAME).read_text(encoding="utf-8")
        assert result.document.name in index
        assert result.text.name in index
        assert re.search(r"Foto:\s+2", index)
        assert "Modulo 1. Sicurezza: 2 foto" in index
        assert "Non generato" not in index

    def test_artifacts_and_statistics(self, orchestrator, sample_snapshot):
        result = orchestrator.export(sample_snapshot, ExportOptions.complete_package())

        assert result.photo_folder.file_count == 3
        assert result.statistics.photos_exported == 2
        assert result.statistics.items_processed == 3
        assert result.statistics.spare_parts_included == 1
        assert result.statistics.bytes_written == result.total_size_bytes > 0

    @pytest.mark.parametrize("exporter_cls, missing, label", [
        (DocumentExporter, "document", "Documento"),
        (TextExporter, "text", "Report testo"),
        (PhotoFolderExporter, "photo_folder", "Cartella foto"),
    ])
    def test_failed_component_makes_package_incomplete(
        self, orchestrator, sample_snapshot, exporter_cls, missing, label
    ):
        with patch.object(exporter_cls, "generate", side_effect=RuntimeError("boom")):
            result = orchestrator.export(sample_snapshot, ExportOptions.complete_package())

        assert getattr(result, missing) is None
        assert result.package_index is not None
        assert not result.is_format_complete(ExportFormat.COMBINED_PACKAGE)
        assert [f.format.value for f in result.failures] == [missing]

        index = Path(result.package_index.path).read_text(encoding="utf-8")
        assert re.search(rf"{label}:\s+Non generato", index)

    def test_package_reuses_earlier_document(self, orchestrator, sample_snapshot):
        original = DocumentExporter.generate
        options = _options(ExportFormat.DOCUMENT, ExportFormat.COMBINED_PACKAGE)

        with patch.object(DocumentExporter, "generate", autospec=True, side_effect=original) as spy:
            result = orchestrator.export(sample_snapshot, options)

        assert spy.call_count == 1
        assert result.is_complete_success

    def test_package_index_counts_exported_photos(self, orchestrator, sample_snapshot, photo_dir):
        (photo_dir / "IMG_0001.jpg").unlink()

        result = orchestrator.export(sample_snapshot, ExportOptions.complete_package())

        index = Path(result.package_index.path).read_text(encoding="utf-8")
        assert result.statistics.photos_exported == 1
        assert "FOTO/ (1 foto," in index
        assert "Modulo 1. Sicurezza: 1 foto" in index
        assert "Modulo 2. Qualità saldatura: 0 foto" in index
        # Checkup statistics still report what was recorded
        assert re.search(r"Foto:\s+2", index)

    def test_package_index_counts_reused_photo_folder(self, orchestrator, sample_snapshot, photo_dir):
        (photo_dir / "IMG_0002.jpg").unlink()
        options = _options(ExportFormat.PHOTO_FOLDER, ExportFormat.COMBINED_PACKAGE)

        result = orchestrator.export(sample_snapshot, options)

        index = Path(result.package_index.path).read_text(encoding="utf-8")
        assert "FOTO/ (1 foto," in index
        assert "Modulo 1. Sicurezza: 1 foto" in index

    def test_package_index_counts_files_without_per_module_counts(self, sample_snapshot, tmp_path):
        folder = tmp_path / "FOTO"
        folder.mkdir()
        (folder / "a.jpg").write_bytes(b"x")
        (folder / "INDICE_FOTO.txt").write_text("indice", encoding="utf-8")
        artifact = ExportedArtifact(
            path=str(folder), name="FOTO", size_bytes=1, format=ExportFormat.PHOTO_FOLDER,
        )

        index = render_package_index(sample_snapshot, {ExportFormat.PHOTO_FOLDER: artifact})

        assert "FOTO/ (1 foto," in index
        assert "Modulo 1." not in index


class TestFormatIsolation:

    def test_one_failed_format_does_not_stop_the_others(self, orchestrator, sample_snapshot):
        options = _options(ExportFormat.DOCUMENT, ExportFormat.TEXT)

        with patch.object(DocumentExporter, "generate", side_effect=RuntimeError("disk on fire")):
            result = orchestrator.export(sample_snapshot, options)

        assert result.document is None
        assert result.text is not None
        assert result.incomplete_formats == (ExportFormat.DOCUMENT,)
        assert "disk on fire" in result.failures[0].message
        assert result.completed_stages == (ExportFormat.DOCUMENT, ExportFormat.TEXT)

    def test_text_report_lists_photo_folder_names(self, orchestrator, sample_snapshot):
        options = _options(
            ExportFormat.TEXT, ExportFormat.PHOTO_FOLDER,
            naming_strategy=PhotoNamingStrategy.SEQUENTIAL,
        )

        result = orchestrator.export(sample_snapshot, options)

        report = Path(result.text.path).read_text(encoding="utf-8")
        on_disk = sorted(p.name for p in Path(result.photo_folder.path).glob("*.jpg"))
        assert on_disk == ["foto_001.jpg", "foto_002.jpg"]
        for name in on_disk:
            assert f"        - {name}" in report


class TestStatistics:

    @pytest.mark.parametrize("options, processed", [
        (_options(ExportFormat.DOCUMENT, include_photos=False), 0),
        (_options(ExportFormat.TEXT), 0),
        (_options(ExportFormat.DOCUMENT), 2),
        (ExportOptions.complete_package(), 2),
    ])
    def test_photos_processed_counts_handled_photos(self, orchestrator, sample_snapshot, options, processed):
        result = orchestrator.export(sample_snapshot, options)

        assert result.statistics.photos_processed == processed

    def test_skipped_photo_is_processed_but_not_exported(self, orchestrator, sample_snapshot, photo_dir):
        (photo_dir / "IMG_0001.jpg").unlink()

        result = orchestrator.export(sample_snapshot, _options(ExportFormat.PHOTO_FOLDER))

        assert result.statistics.photos_processed == 2
        assert result.statistics.photos_exported == 1


class TestPreflight:

    def test_validation_messages_are_aggregated(self, orchestrator, export_root):
        snapshot = build_snapshot((), technician="", client="")

        with pytest.raises(ExportValidationError) as exc_info:
            orchestrator.export(snapshot, ExportOptions())

        messages = exc_info.value.messages
        assert "Technician name is required" in messages
        assert "Client name is required" in messages
        assert "Checkup has no modules" in messages
        assert not export_root.exists()

    def test_validate_returns_empty_list_for_valid_snapshot(self, orchestrator, sample_snapshot):
        assert orchestrator.validate(sample_snapshot, ExportOptions()) == []

    def test_invalid_options_are_reported(self, orchestrator, sample_snapshot):
        messages = orchestrator.validate(sample_snapshot, ExportOptions(formats=frozenset()))
        assert messages == ["At least one export format must be selected"]

    def test_insufficient_storage(self, orchestrator, sample_snapshot, export_root):
        with patch("modules.export_files.shutil.disk_usage", return_value=Mock(free=10)):
            with pytest.raises(InsufficientStorageError):
                orchestrator.export(sample_snapshot, ExportOptions())

        assert not export_root.exists()


class TestProgressAndCancellation:

    def test_progress_is_monotonic_and_ends_at_100(self, orchestrator, sample_snapshot):
        options = _options(ExportFormat.DOCUMENT, ExportFormat.TEXT, ExportFormat.PHOTO_FOLDER)

        results = list(orchestrator.run(sample_snapshot, options))

        progress = [r.progress_percent for r in results]
        assert progress == sorted(progress)
        assert progress[-1] == 100.0
        assert [r.is_final for r in results] == [False, False, False, True]
        assert [len(r.completed_stages) for r in results[:-1]] == [1, 2, 3]

    def test_cancel_between_formats(self, orchestrator, sample_snapshot):
        token = CancellationToken()
        options = _options(ExportFormat.DOCUMENT, ExportFormat.TEXT)

        results = []
        for result in orchestrator.run(sample_snapshot, options, token):
            results.append(result)
            token.cancel()

        final = results[-1]
        assert final.is_final
        assert final.cancelled
        assert final.document is not None
        assert final.text is None
        assert final.completed_stages == (ExportFormat.DOCUMENT,)

    def test_cancel_during_photo_export(self, orchestrator, sample_snapshot):
        token = CancellationToken()
        options = _options(ExportFormat.PHOTO_FOLDER)
        original = PhotoFolderExporter.generate

        def cancel_then_export(self, *args, **kwargs):
            token.cancel()
            return original(self, *args, **kwargs)

        with patch.object(PhotoFolderExporter, "generate", autospec=True, side_effect=cancel_then_export):
            final = orchestrator.export(sample_snapshot, options, token)

        assert final.cancelled
        assert final.photo_folder is None
        assert final.failures[0].format == ExportFormat.PHOTO_FOLDER

    def test_cancelled_before_start(self, orchestrator, sample_snapshot):
        token = CancellationToken()
        token.cancel()

        results = list(orchestrator.run(sample_snapshot, ExportOptions(), token))

        assert len(results) == 1
        assert results[0].cancelled
        assert results[0].completed_stages == ()

"""
Unit tests for ExportEstimator.
"""

from dataclasses import replace
from unittest.mock import patch

import pytest

from config import Config
from models.checkup import SparePart
from models.export_options import ExportFormat, ExportOptions, PhotoQuality
from modules.estimator import ExportEstimator


@pytest.fixture
def estimator():
    return ExportEstimator()


def _options(*formats, **kwargs):
    return ExportOptions(formats=frozenset(formats), **kwargs)


class TestEstimate:

    def test_one_estimation_per_format(self, estimator, sample_snapshot):
        options = _options(ExportFormat.DOCUMENT, ExportFormat.TEXT, ExportFormat.PHOTO_FOLDER)

        report = estimator.estimate(sample_snapshot, options)

        assert [e.format for e in report.estimations] == [
            ExportFormat.DOCUMENT, ExportFormat.TEXT, ExportFormat.PHOTO_FOLDER
        ]
        assert report.total_size_bytes == sum(e.size_bytes for e in report.estimations)
        assert report.total_file_count == 1 + 1 + (2 + 1)

    def test_document_grows_with_photos(self, estimator, sample_snapshot):
        with_photos = estimator.estimate(sample_snapshot, _options(ExportFormat.DOCUMENT))
        without = estimator.estimate(
            sample_snapshot, _options(ExportFormat.DOCUMENT, include_photos=False)
        )

        assert without.total_size_bytes == ExportEstimator.DOCUMENT_BASE_BYTES
        assert with_photos.total_size_bytes > without.total_size_bytes

    def test_document_counts_only_embedded_photos(self, sample_snapshot):
        capped = ExportEstimator(max_photos_per_module=1).estimate(
            sample_snapshot, _options(ExportFormat.DOCUMENT)
        )

        assert capped.total_size_bytes == (
            ExportEstimator.DOCUMENT_BASE_BYTES + ExportEstimator.DOCUMENT_PER_PHOTO_BYTES
        )
        assert capped.estimations[0].time_ms == (
            ExportEstimator.DOCUMENT_BASE_MS + ExportEstimator.DOCUMENT_PER_PHOTO_MS
        )

    def test_text_grows_with_spare_parts(self, estimator, sample_snapshot):
        options = _options(ExportFormat.TEXT)
        parts = tuple(
            SparePart(part_number=f"P{n}", description="Ricambio " * 100) for n in range(40)
        )

        base = estimator.estimate(sample_snapshot, options).total_size_bytes
        more = estimator.estimate(replace(sample_snapshot, spare_parts=parts), options).total_size_bytes

        assert base == ExportEstimator.TEXT_MIN_BYTES
        assert more > base

    def test_quality_ordering(self, estimator, sample_snapshot):
        sizes = {
            quality: estimator.estimate(
                sample_snapshot, _options(ExportFormat.PHOTO_FOLDER, photo_quality=quality)
            ).total_size_bytes
            for quality in PhotoQuality
        }

        assert sizes[PhotoQuality.ORIGINAL] > sizes[PhotoQuality.OPTIMIZED] > sizes[PhotoQuality.COMPRESSED]

    def test_package_exceeds_its_components(self, estimator, sample_snapshot):
        components = estimator.estimate(
            sample_snapshot,
            _options(ExportFormat.DOCUMENT, ExportFormat.TEXT, ExportFormat.PHOTO_FOLDER),
        )
        package = estimator.estimate(sample_snapshot, ExportOptions.complete_package())

        assert package.total_size_bytes > components.total_size_bytes
        assert package.total_time_ms > components.total_time_ms
        assert package.total_file_count == components.total_file_count + 1

    def test_reasoning_mentions_photo_count(self, estimator, sample_snapshot):
        report = estimator.estimate(sample_snapshot, ExportOptions())
        assert report.reasoning.startswith("2 photo(s) in the checkup.")


class TestWarnings:

    def test_no_warnings_for_small_export(self, estimator, sample_snapshot):
        assert estimator.estimate(sample_snapshot, ExportOptions()).warnings == ()

    def test_large_export_warning(self, estimator, sample_snapshot):
        with patch.object(Config, "ESTIMATOR_LARGE_EXPORT_MB", 0.001):
            report = estimator.estimate(sample_snapshot, ExportOptions())

        assert any(w.startswith("Large export") for w in report.warnings)

    def test_empty_photo_folder_warning(self, estimator, sample_snapshot):
        snapshot = replace(sample_snapshot, modules=sample_snapshot.modules[1:])

        report = estimator.estimate(snapshot, _options(ExportFormat.PHOTO_FOLDER))

        assert "Photo folder requested but the checkup has no photos." in report.warnings

    def test_many_original_photos_warning(self, estimator, sample_snapshot):
        with patch.object(ExportEstimator, "MANY_ORIGINAL_PHOTOS", 1):
            report = estimator.estimate(sample_snapshot, ExportOptions.photo_archive())

        assert any("original quality" in w for w in report.warnings)

"""
Unit tests for export directory naming, storage check and cleanup.
"""

import os
from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import pytest

from core.exceptions import InsufficientStorageError
from modules import export_files


NOW = datetime(2025, 3, 14, 15, 42)


class TestNaming:

    @pytest.mark.parametrize("name, expected", [
        ("Rossi & Figli S.p.A.", "Rossi_Figli_S_p_A"),
        ("ACME", "ACME"),
        ("Società Meccanica Lombarda Srl", "Societ_Meccanica_Lom"),
        ("", "Cliente"),
        ("***", "Cliente"),
    ])
    def test_sanitize_client_name(self, name, expected):
        assert export_files.sanitize_client_name(name) == expected

    def test_sanitized_name_length(self):
        assert len(export_files.sanitize_client_name("x" * 100)) == export_files.CLIENT_NAME_MAX_LENGTH

    def test_base_name(self, sample_snapshot):
        assert export_files.base_name(sample_snapshot, NOW) == "20250314_1542_Checkup_Rossi_Figli_S_p_A_3f2a9c1e"

    def test_report_file_names(self, sample_snapshot):
        assert export_files.document_file_name(sample_snapshot, NOW).endswith("_3f2a9c1e.docx")
        assert export_files.text_file_name(sample_snapshot, NOW).endswith("_3f2a9c1e.txt")


class TestPrepareExportDirectory:

    def test_creates_timestamped_directory(self, sample_snapshot, export_root):
        directory = export_files.prepare_export_directory(export_root, sample_snapshot, now=NOW)

        assert directory.is_dir()
        assert directory.parent == export_root
        assert directory.name == export_files.base_name(sample_snapshot, NOW)

    def test_same_minute_gets_suffix(self, sample_snapshot, export_root):
        first = export_files.prepare_export_directory(export_root, sample_snapshot, now=NOW)
        second = export_files.prepare_export_directory(export_root, sample_snapshot, now=NOW)
        third = export_files.prepare_export_directory(export_root, sample_snapshot, now=NOW)

        assert second.name == first.name + "_2"
        assert third.name == first.name + "_3"

    def test_untimestamped_directory_is_reused(self, sample_snapshot, export_root):
        first = export_files.prepare_export_directory(export_root, sample_snapshot, timestamped=False)
        second = export_files.prepare_export_directory(export_root, sample_snapshot, timestamped=False)

        assert first == second
        assert first.name == "Checkup_Rossi_Figli_S_p_A_3f2a9c1e"


class TestStorageCheck:

    def test_enough_space(self, export_root):
        free = export_files.check_storage_space(export_root, 1)
        assert free > 0

    def test_insufficient_space(self, export_root):
        with patch("modules.export_files.shutil.disk_usage", return_value=Mock(free=10)):
            with pytest.raises(InsufficientStorageError) as exc_info:
                export_files.check_storage_space(export_root, 100, safety_margin_bytes=5)

        assert exc_info.value.required_bytes == 105
        assert exc_info.value.available_bytes == 10


class TestListAndCleanup:

    @staticmethod
    def _age(path, days):
        stamp = (datetime.now() - timedelta(days=days)).timestamp()
        os.utime(path, (stamp, stamp))

    def test_list_exports_newest_first(self, export_root):
        old = export_root / "20250101_0900_Checkup_A_11111111"
        new = export_root / "20250301_0900_Checkup_B_22222222"
        other = export_root / "unrelated"
        for directory in (old, new, other):
            directory.mkdir(parents=True)
        (new / "report.txt").write_text("abc")
        self._age(old, 10)

        exports = export_files.list_exports(export_root)

        assert [e["name"] for e in exports] == [new.name, old.name]
        assert exports[0]["size_bytes"] == 3

    def test_list_missing_root(self, export_root):
        assert export_files.list_exports(export_root) == []

    def test_cleanup_removes_only_old_exports(self, export_root):
        old = export_root / "20240101_0900_Checkup_A_11111111"
        recent = export_root / "20250301_0900_Checkup_B_22222222"
        unrelated = export_root / "keep_me"
        for directory in (old, recent, unrelated):
            directory.mkdir(parents=True)
        (old / "FOTO").mkdir()
        self._age(old, 45)
        self._age(unrelated, 45)

        removed = export_files.cleanup_old_exports(export_root, 30)

        assert removed == 1
        assert not old.exists()
        assert recent.exists()
        assert unrelated.exists()

    def test_cleanup_rejects_negative_age(self, export_root):
        with pytest.raises(ValueError):
            export_files.cleanup_old_exports(export_root, -1)

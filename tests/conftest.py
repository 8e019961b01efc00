"""
Shared fixtures for the export pipeline tests.

Photos are real JPEGs generated with Pillow inside ``tmp_path`` so the
quality processors and python-docx see genuine image files.
"""

from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from models.checkup import (
    CheckItem,
    CheckItemStatus,
    CheckupHeader,
    CheckupSnapshot,
    ClientInfo,
    CriticalityLevel,
    IslandInfo,
    ModuleSection,
    Photo,
    SparePart,
    SparePartUrgency,
    TechnicianInfo,
)
from modules.snapshot_mapper import compute_statistics
from services.export_orchestrator import ExportOrchestrator


def make_jpeg(path: Path, size=(640, 480), color=(200, 80, 40)) -> Path:
    """Write a solid-colour JPEG and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, "JPEG", quality=95)
    return path


def build_snapshot(modules, spare_parts=(), technician="Marco Bianchi", **header_overrides):
    """Snapshot with a standard header and statistics computed from ``modules``."""
    header = CheckupHeader(
        client=ClientInfo(
            company_name=header_overrides.get("client", "Rossi & Figli S.p.A."),
            contact_person="Anna Rossi",
            site="Stabilimento Nord",
        ),
        technician=TechnicianInfo(name=technician, company="QServizi"),
        island=IslandInfo(
            island_type=header_overrides.get("island_type", "Robot Welding"),
            serial_number="RW-2024-017",
            model="RW-500",
            operating_hours=12500,
        ),
        notes=header_overrides.get("notes", "Impianto in produzione durante la verifica."),
        checkup_date=datetime(2025, 3, 14, 9, 30),
    )
    modules = tuple(modules)
    return CheckupSnapshot(
        checkup_id="3f2a9c1e-5b7d-4e21-9a0f-1c2d3e4f5a6b",
        header=header,
        modules=modules,
        spare_parts=tuple(spare_parts),
        statistics=compute_statistics(modules),
        created_at=datetime(2025, 3, 14, 9, 0),
        completed_at=datetime(2025, 3, 14, 11, 45),
    )


# Fixtures

@pytest.fixture
def photo_dir(tmp_path):
    """Directory holding the source photos."""
    return tmp_path / "source_photos"


@pytest.fixture
def sample_snapshot(photo_dir):
    """
    2 modules, 3 check items; the first item has 2 photos, the others none.
    """
    first = make_jpeg(photo_dir / "IMG_0001.jpg")
    second = make_jpeg(photo_dir / "IMG_0002.jpg", color=(30, 120, 200))

    safety = ModuleSection(
        name="Sicurezza",
        items=(
            CheckItem(
                id="item-1",
                description="Barriere fotoelettriche",
                status=CheckItemStatus.OK,
                criticality=CriticalityLevel.CRITICAL,
                item_code="SIC-01",
                notes="Test di intervento superato",
                photos=(
                    Photo(id="photo-1", file_path=str(first), caption="Lato ingresso",
                          taken_at=datetime(2025, 3, 14, 9, 40, 12)),
                    Photo(id="photo-2", file_path=str(second),
                          taken_at=datetime(2025, 3, 14, 9, 41, 3)),
                ),
            ),
            CheckItem(
                id="item-2",
                description="Pulsante di emergenza",
                status=CheckItemStatus.NOK,
                criticality=CriticalityLevel.IMPORTANT,
                notes="Ritorno lento del fungo",
            ),
        ),
    )
    quality = ModuleSection(
        name="Qualità saldatura",
        items=(
            CheckItem(
                id="item-3",
                description="Controllo cordoni",
                status=CheckItemStatus.NA,
                criticality=CriticalityLevel.ROUTINE,
            ),
        ),
    )
    spare_parts = (
        SparePart(
            part_number="PE-220",
            description="Pulsante emergenza a fungo",
            quantity=1,
            urgency=SparePartUrgency.HIGH,
            estimated_cost=48.5,
        ),
    )
    return build_snapshot((safety, quality), spare_parts)


@pytest.fixture
def export_root(tmp_path):
    """Export root; deliberately not created so tests can check side effects."""
    return tmp_path / "exports"


@pytest.fixture
def orchestrator(export_root):
    return ExportOrchestrator.create_default(export_root, photo_max_width=320)

"""
Checkup snapshot data models.

A CheckupSnapshot is the read-only view of one inspection session that the
export pipeline works from. It is assembled at the boundary by
``modules.snapshot_mapper`` and never mutated afterwards, which makes it
safe to hand to a background export thread.

All dataclasses here are frozen; collections are tuples.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


# =============================================================================
# ENUMS
# =============================================================================

class CheckItemStatus(Enum):
    """Outcome of a single inspection point."""

    OK = "OK"
    """Check passed."""

    NOK = "NOK"
    """Check failed; an action is needed."""

    NA = "NA"
    """Not applicable to this equipment."""

    PENDING = "PENDING"
    """Not checked yet."""

    @property
    def display_name(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def report_color(self) -> str:
        """Hex RGB used for the status cell in the document."""
        return _STATUS_COLORS[self]


_STATUS_LABELS = {
    CheckItemStatus.OK: "OK",
    CheckItemStatus.NOK: "NOK",
    CheckItemStatus.NA: "N/A",
    CheckItemStatus.PENDING: "Da verificare",
}

_STATUS_COLORS = {
    CheckItemStatus.OK: "00B050",
    CheckItemStatus.NOK: "FF0000",
    CheckItemStatus.NA: "7F7F7F",
    CheckItemStatus.PENDING: "FFC000",
}


class CriticalityLevel(Enum):
    """How much a failure of the check item matters."""

    CRITICAL = "CRITICAL"
    IMPORTANT = "IMPORTANT"
    ROUTINE = "ROUTINE"
    NA = "NA"

    @property
    def display_name(self) -> str:
        return {
            CriticalityLevel.CRITICAL: "Critico",
            CriticalityLevel.IMPORTANT: "Importante",
            CriticalityLevel.ROUTINE: "Routine",
            CriticalityLevel.NA: "N/A",
        }[self]


class SparePartUrgency(Enum):
    """How soon a requested spare part is needed."""

    IMMEDIATE = "IMMEDIATE"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def display_name(self) -> str:
        return {
            SparePartUrgency.IMMEDIATE: "Immediata",
            SparePartUrgency.HIGH: "Alta",
            SparePartUrgency.MEDIUM: "Media",
            SparePartUrgency.LOW: "Bassa",
        }[self]

    @property
    def rank(self) -> int:
        """0 for the most urgent."""
        return list(SparePartUrgency).index(self)


class CheckupStatus(Enum):
    """
    Lifecycle of a checkup record.

    Lifecycle:
        DRAFT -> IN_PROGRESS -> COMPLETED -> EXPORTED -> ARCHIVED
    """

    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPORTED = "EXPORTED"
    ARCHIVED = "ARCHIVED"

    @property
    def display_name(self) -> str:
        return {
            CheckupStatus.DRAFT: "Bozza",
            CheckupStatus.IN_PROGRESS: "In corso",
            CheckupStatus.COMPLETED: "Completato",
            CheckupStatus.EXPORTED: "Esportato",
            CheckupStatus.ARCHIVED: "Archiviato",
        }[self]


# =============================================================================
# HEADER
# =============================================================================

@dataclass(frozen=True)
class ClientInfo:
    """Client identity printed on every report."""

    company_name: str
    """Company name; required for export."""

    contact_person: str = ""
    site: str = ""
    address: str = ""


@dataclass(frozen=True)
class TechnicianInfo:
    """Technician responsible for the checkup."""

    name: str
    """Full name; required for export."""

    company: str = ""
    certification: str = ""
    phone: str = ""
    email: str = ""


@dataclass(frozen=True)
class IslandInfo:
    """Identity and usage metrics of the inspected equipment (island)."""

    island_type: str
    """Equipment type display name, e.g. "POLY Move"; required for export."""

    serial_number: str = ""
    model: str = ""
    installation_date: Optional[datetime] = None
    operating_hours: int = 0
    cycle_count: int = 0


@dataclass(frozen=True)
class CheckupHeader:
    """Everything about a checkup that is not a check item."""

    client: ClientInfo
    technician: TechnicianInfo
    island: IslandInfo
    notes: str = ""
    checkup_date: Optional[datetime] = None


# =============================================================================
# CHECK ITEMS AND PHOTOS
# =============================================================================

@dataclass(frozen=True)
class Photo:
    """A photo attached to a check item. ``file_path`` points at the source JPEG."""

    id: str
    file_path: str
    caption: str = ""
    taken_at: Optional[datetime] = None
    file_size: int = 0
    """Size recorded when the photo was captured (0 when unknown)."""

    @property
    def file_name(self) -> str:
        return self.file_path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class CheckItem:
    """A single inspection point."""

    id: str
    description: str
    status: CheckItemStatus = CheckItemStatus.PENDING
    criticality: CriticalityLevel = CriticalityLevel.ROUTINE
    item_code: str = ""
    notes: str = ""
    photos: Tuple[Photo, ...] = ()

    @property
    def is_failed(self) -> bool:
        return self.status == CheckItemStatus.NOK

    @property
    def is_critical_failure(self) -> bool:
        return self.is_failed and self.criticality == CriticalityLevel.CRITICAL


@dataclass(frozen=True)
class ModuleSection:
    """A named module (category) and its check items in checklist order."""

    name: str
    items: Tuple[CheckItem, ...] = ()

    @property
    def photo_count(self) -> int:
        return sum(len(item.photos) for item in self.items)


@dataclass(frozen=True)
class SparePart:
    """A spare part requested during the checkup."""

    part_number: str
    description: str
    quantity: int = 1
    urgency: SparePartUrgency = SparePartUrgency.MEDIUM
    category: str = ""
    estimated_cost: Optional[float] = None
    notes: str = ""


@dataclass(frozen=True)
class CheckupStatistics:
    """Counts precomputed by the persistence layer (or by the mapper)."""

    total_items: int = 0
    ok_count: int = 0
    nok_count: int = 0
    na_count: int = 0
    pending_count: int = 0
    critical_count: int = 0
    """Failed items with CRITICAL criticality."""

    important_count: int = 0
    """Failed items with IMPORTANT criticality."""

    @property
    def completed_items(self) -> int:
        return self.total_items - self.pending_count

    @property
    def completion_percentage(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.completed_items * 100.0 / self.total_items

    def percentage_of(self, count: int) -> float:
        """Share of ``count`` in the total, as a percentage."""
        if self.total_items == 0:
            return 0.0
        return count * 100.0 / self.total_items


# =============================================================================
# SNAPSHOT
# =============================================================================

@dataclass(frozen=True)
class CheckupSnapshot:
    """
    Immutable view of one checkup, grouped by module.

    Derived data (photo counts, flattened items) is exposed as read-only
    properties. Conversion from persistence records lives in
    ``modules.snapshot_mapper``.
    """

    checkup_id: str
    header: CheckupHeader
    modules: Tuple[ModuleSection, ...] = ()
    spare_parts: Tuple[SparePart, ...] = ()
    statistics: CheckupStatistics = field(default_factory=CheckupStatistics)
    status: CheckupStatus = CheckupStatus.COMPLETED
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    generated_at: datetime = field(default_factory=datetime.now)
    """When the snapshot was assembled; used in footers."""

    @property
    def equipment_type(self) -> str:
        return self.header.island.island_type

    @property
    def client_name(self) -> str:
        return self.header.client.company_name

    @property
    def technician_name(self) -> str:
        return self.header.technician.name

    @property
    def all_items(self) -> Tuple[CheckItem, ...]:
        return tuple(item for module in self.modules for item in module.items)

    @property
    def photo_count(self) -> int:
        return sum(module.photo_count for module in self.modules)

    @property
    def items_with_photos(self) -> int:
        return sum(1 for item in self.all_items if item.photos)

    def photo_count_by_module(self) -> Dict[str, int]:
        """Photos per module name, in module order."""
        return {module.name: module.photo_count for module in self.modules}

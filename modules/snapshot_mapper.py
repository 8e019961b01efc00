"""
Conversion between persistence records and CheckupSnapshot.

The persistence layer hands over a plain dict per checkup (the result of
its "get checkup details" query), already grouped by module. Keys may be
snake_case or camelCase. This module is the only place that knows about
that record shape; the snapshot types themselves carry no conversion code.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from models.checkup import (
    CheckItem,
    CheckItemStatus,
    CheckupHeader,
    CheckupSnapshot,
    CheckupStatistics,
    CheckupStatus,
    ClientInfo,
    CriticalityLevel,
    IslandInfo,
    ModuleSection,
    Photo,
    SparePart,
    SparePartUrgency,
    TechnicianInfo,
)
from logging_config import get_logger


logger = get_logger(__name__)

E = TypeVar("E")


# =============================================================================
# FIELD HELPERS
# =============================================================================

def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _get(data: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Read ``key`` in snake_case, falling back to its camelCase spelling."""
    if key in data:
        return data[key]
    return data.get(_camel(key), default)


def _text(data: Dict[str, Any], key: str) -> str:
    value = _get(data, key, "")
    return "" if value is None else str(value).strip()


def _int(data: Dict[str, Any], key: str) -> int:
    try:
        return int(_get(data, key, 0) or 0)
    except (TypeError, ValueError):
        return 0


def _datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.debug(f"Ignoring unparseable timestamp: {value!r}")
        return None


def _enum(enum_cls: Type[E], value: Any, default: E) -> E:
    """Parse an enum by value or name; unknown values fall back to ``default``."""
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    text = str(value).strip().upper()
    try:
        return enum_cls(text)  # type: ignore[call-arg]
    except ValueError:
        member = getattr(enum_cls, "__members__", {}).get(text)
        if member is not None:
            return member
        logger.debug(f"Unknown {enum_cls.__name__} value {value!r}, using {default}")
        return default


# =============================================================================
# RECORD -> SNAPSHOT
# =============================================================================

def photo_from_dict(data: Dict[str, Any], fallback_id: str) -> Photo:
    return Photo(
        id=_text(data, "id") or fallback_id,
        file_path=_text(data, "file_path"),
        caption=_text(data, "caption"),
        taken_at=_datetime(_get(data, "taken_at")),
        file_size=_int(data, "file_size"),
    )


def check_item_from_dict(data: Dict[str, Any], fallback_id: str) -> CheckItem:
    item_id = _text(data, "id") or fallback_id
    photos = tuple(
        photo_from_dict(photo, f"{item_id}-photo-{n + 1}")
        for n, photo in enumerate(_get(data, "photos", None) or [])
    )
    return CheckItem(
        id=item_id,
        description=_text(data, "description"),
        status=_enum(CheckItemStatus, _get(data, "status"), CheckItemStatus.PENDING),
        criticality=_enum(
            CriticalityLevel, _get(data, "criticality"), CriticalityLevel.ROUTINE
        ),
        item_code=_text(data, "item_code"),
        notes=_text(data, "notes"),
        photos=photos,
    )


def spare_part_from_dict(data: Dict[str, Any]) -> SparePart:
    cost = _get(data, "estimated_cost")
    return SparePart(
        part_number=_text(data, "part_number"),
        description=_text(data, "description"),
        quantity=_int(data, "quantity") or 1,
        urgency=_enum(SparePartUrgency, _get(data, "urgency"), SparePartUrgency.MEDIUM),
        category=_text(data, "category"),
        estimated_cost=float(cost) if cost not in (None, "") else None,
        notes=_text(data, "notes"),
    )


def header_from_dict(data: Dict[str, Any]) -> CheckupHeader:
    client = _get(data, "client", None) or _get(data, "client_info", None) or {}
    technician = _get(data, "technician", None) or _get(data, "technician_info", None) or {}
    island = _get(data, "island", None) or _get(data, "island_info", None) or {}
    return CheckupHeader(
        client=ClientInfo(
            company_name=_text(client, "company_name"),
            contact_person=_text(client, "contact_person"),
            site=_text(client, "site"),
            address=_text(client, "address"),
        ),
        technician=TechnicianInfo(
            name=_text(technician, "name"),
            company=_text(technician, "company"),
            certification=_text(technician, "certification"),
            phone=_text(technician, "phone"),
            email=_text(technician, "email"),
        ),
        island=IslandInfo(
            island_type=_text(island, "island_type"),
            serial_number=_text(island, "serial_number"),
            model=_text(island, "model"),
            installation_date=_datetime(_get(island, "installation_date")),
            operating_hours=_int(island, "operating_hours"),
            cycle_count=_int(island, "cycle_count"),
        ),
        notes=_text(data, "notes"),
        checkup_date=_datetime(_get(data, "checkup_date")),
    )


def _modules_from_record(data: Dict[str, Any]) -> List[ModuleSection]:
    """
    Accept either ``modules: [{name, items}]`` or ``items_by_module: {name: [items]}``.
    """
    raw_modules = _get(data, "modules", None)
    if raw_modules is None:
        grouped = _get(data, "items_by_module", None) or {}
        raw_modules = [{"name": name, "items": items} for name, items in grouped.items()]

    modules: List[ModuleSection] = []
    for m, raw in enumerate(raw_modules):
        name = _text(raw, "name") or f"Modulo {m + 1}"
        items = tuple(
            check_item_from_dict(item, f"m{m + 1}-item-{i + 1}")
            for i, item in enumerate(_get(raw, "items", None) or [])
        )
        modules.append(ModuleSection(name=name, items=items))
    return modules


def compute_statistics(modules: Iterable[ModuleSection]) -> CheckupStatistics:
    """Count items by status and failed items by criticality."""
    items = [item for module in modules for item in module.items]
    return CheckupStatistics(
        total_items=len(items),
        ok_count=sum(1 for i in items if i.status == CheckItemStatus.OK),
        nok_count=sum(1 for i in items if i.status == CheckItemStatus.NOK),
        na_count=sum(1 for i in items if i.status == CheckItemStatus.NA),
        pending_count=sum(1 for i in items if i.status == CheckItemStatus.PENDING),
        critical_count=sum(1 for i in items if i.is_critical_failure),
        important_count=sum(
            1 for i in items
            if i.is_failed and i.criticality == CriticalityLevel.IMPORTANT
        ),
    )


def _statistics_from_dict(data: Dict[str, Any]) -> CheckupStatistics:
    return CheckupStatistics(
        total_items=_int(data, "total_items"),
        ok_count=_int(data, "ok_count"),
        nok_count=_int(data, "nok_count"),
        na_count=_int(data, "na_count"),
        pending_count=_int(data, "pending_count"),
        critical_count=_int(data, "critical_count"),
        important_count=_int(data, "important_count"),
    )


def snapshot_from_dict(data: Dict[str, Any]) -> CheckupSnapshot:
    """
    Build a CheckupSnapshot from a checkup details record.

    Missing optional fields become empty strings/zeros; required export
    fields (client, technician, equipment type) are checked later by the
    orchestrator so that all problems can be reported together.

    Raises:
        ValueError: If the record is not a mapping or has no checkup id
    """
    if not isinstance(data, dict):
        raise ValueError("Checkup record must be a JSON object")

    checkup_id = _text(data, "id") or _text(data, "checkup_id")
    if not checkup_id:
        raise ValueError("Checkup record has no id")

    modules = _modules_from_record(data)
    raw_stats = _get(data, "statistics", None)
    statistics = (
        _statistics_from_dict(raw_stats) if raw_stats else compute_statistics(modules)
    )

    snapshot = CheckupSnapshot(
        checkup_id=checkup_id,
        header=header_from_dict(_get(data, "header", None) or {}),
        modules=tuple(modules),
        spare_parts=tuple(
            spare_part_from_dict(part) for part in (_get(data, "spare_parts", None) or [])
        ),
        statistics=statistics,
        status=_enum(CheckupStatus, _get(data, "status"), CheckupStatus.DRAFT),
        created_at=_datetime(_get(data, "created_at")),
        completed_at=_datetime(_get(data, "completed_at")),
        generated_at=_datetime(_get(data, "generated_at")) or datetime.now(),
    )

    logger.debug(
        f"Mapped checkup {checkup_id[:8]}: {len(snapshot.modules)} modules, "
        f"{len(snapshot.all_items)} items, {snapshot.photo_count} photos"
    )
    return snapshot


def resolve_photo_paths(snapshot: CheckupSnapshot, photo_root: Path) -> CheckupSnapshot:
    """
    Resolve every photo path against ``photo_root``.

    Relative paths are taken relative to the root; absolute paths must
    already point inside it. Symlinks are followed before the check.

    Raises:
        ValueError: If any photo path resolves outside ``photo_root``
    """
    root = Path(photo_root).resolve()
    outside: List[str] = []

    def resolve(photo: Photo) -> Photo:
        if not photo.file_path:
            return photo
        path = (root / photo.file_path).resolve()
        if not path.is_relative_to(root):
            outside.append(photo.id)
            return photo
        return replace(photo, file_path=str(path))

    modules = tuple(
        replace(module, items=tuple(
            replace(item, photos=tuple(resolve(photo) for photo in item.photos))
            for item in module.items
        ))
        for module in snapshot.modules
    )
    if outside:
        raise ValueError(f"Photo paths outside the photo root: {', '.join(outside)}")
    return replace(snapshot, modules=modules)


# =============================================================================
# SNAPSHOT -> RECORD
# =============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _items_to_list(items: Sequence[CheckItem]) -> List[Dict[str, Any]]:
    return [
        {
            "id": item.id,
            "description": item.description,
            "status": item.status.value,
            "criticality": item.criticality.value,
            "item_code": item.item_code,
            "notes": item.notes,
            "photos": [
                {
                    "id": photo.id,
                    "file_path": photo.file_path,
                    "caption": photo.caption,
                    "taken_at": _iso(photo.taken_at),
                    "file_size": photo.file_size,
                }
                for photo in item.photos
            ],
        }
        for item in items
    ]


def snapshot_to_dict(snapshot: CheckupSnapshot) -> Dict[str, Any]:
    """Inverse of snapshot_from_dict (snake_case keys)."""
    header = snapshot.header
    stats = snapshot.statistics
    return {
        "id": snapshot.checkup_id,
        "status": snapshot.status.value,
        "header": {
            "client": {
                "company_name": header.client.company_name,
                "contact_person": header.client.contact_person,
                "site": header.client.site,
                "address": header.client.address,
            },
            "technician": {
                "name": header.technician.name,
                "company": header.technician.company,
                "certification": header.technician.certification,
                "phone": header.technician.phone,
                "email": header.technician.email,
            },
            "island": {
                "island_type": header.island.island_type,
                "serial_number": header.island.serial_number,
                "model": header.island.model,
                "installation_date": _iso(header.island.installation_date),
                "operating_hours": header.island.operating_hours,
                "cycle_count": header.island.cycle_count,
            },
            "notes": header.notes,
            "checkup_date": _iso(header.checkup_date),
        },
        "modules": [
            {"name": module.name, "items": _items_to_list(module.items)}
            for module in snapshot.modules
        ],
        "spare_parts": [
            {
                "part_number": part.part_number,
                "description": part.description,
                "quantity": part.quantity,
                "urgency": part.urgency.value,
                "category": part.category,
                "estimated_cost": part.estimated_cost,
                "notes": part.notes,
            }
            for part in snapshot.spare_parts
        ],
        "statistics": {
            "total_items": stats.total_items,
            "ok_count": stats.ok_count,
            "nok_count": stats.nok_count,
            "na_count": stats.na_count,
            "pending_count": stats.pending_count,
            "critical_count": stats.critical_count,
            "important_count": stats.important_count,
        },
        "created_at": _iso(snapshot.created_at),
        "completed_at": _iso(snapshot.completed_at),
        "generated_at": _iso(snapshot.generated_at),
    }

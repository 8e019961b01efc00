"""
Export directory bookkeeping.

Naming of export directories and report files, the pre-flight free space
check, and the cleanup-by-age sweep over the export root.
"""

from __future__ import annotations

import re
import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.exceptions import InsufficientStorageError
from models.checkup import CheckupSnapshot
from logging_config import get_logger


logger = get_logger(__name__)

CLIENT_NAME_MAX_LENGTH = 20
CLIENT_NAME_FALLBACK = "Cliente"
DOCUMENT_EXTENSION = ".docx"
TEXT_EXTENSION = ".txt"

# Every directory created by prepare_export_directory contains this marker
_CHECKUP_MARKER = "Checkup_"


def sanitize_client_name(name: str) -> str:
    """``"Rossi & Figli S.p.A."`` -> ``"Rossi_Figli_S_p_A"`` (max 20 chars)."""
    cleaned = re.sub(r"[^A-Za-z0-9]+", "_", name or "").strip("_")
    cleaned = cleaned[:CLIENT_NAME_MAX_LENGTH].rstrip("_")
    return cleaned or CLIENT_NAME_FALLBACK


def base_name(snapshot: CheckupSnapshot, now: Optional[datetime] = None) -> str:
    """``{YYYYMMDD_HHMM}_Checkup_{client}_{id8}``"""
    now = now or datetime.now()
    client = sanitize_client_name(snapshot.client_name)
    return f"{now:%Y%m%d_%H%M}_{_CHECKUP_MARKER}{client}_{snapshot.checkup_id[:8]}"


def document_file_name(snapshot: CheckupSnapshot, now: Optional[datetime] = None) -> str:
    return base_name(snapshot, now) + DOCUMENT_EXTENSION


def text_file_name(snapshot: CheckupSnapshot, now: Optional[datetime] = None) -> str:
    return base_name(snapshot, now) + TEXT_EXTENSION


def export_directory_path(
    root: Path,
    snapshot: CheckupSnapshot,
    timestamped: bool = True,
    now: Optional[datetime] = None,
) -> Path:
    """Directory an export of ``snapshot`` would write into; nothing is created."""
    if timestamped:
        return Path(root) / base_name(snapshot, now)
    client = sanitize_client_name(snapshot.client_name)
    return Path(root) / f"{_CHECKUP_MARKER}{client}_{snapshot.checkup_id[:8]}"


def prepare_export_directory(
    root: Path,
    snapshot: CheckupSnapshot,
    timestamped: bool = True,
    now: Optional[datetime] = None,
) -> Path:
    """
    Create the destination directory for one export.

    A timestamped directory is unique per minute; if one already exists
    (two exports in the same minute) a ``_2``, ``_3``... suffix is added.

    Raises:
        OSError: If the directory cannot be created
    """
    directory = export_directory_path(root, snapshot, timestamped, now)
    if timestamped:
        candidate, counter = directory, 2
        while candidate.exists():
            candidate = directory.with_name(f"{directory.name}_{counter}")
            counter += 1
        directory = candidate

    directory.mkdir(parents=True, exist_ok=True)
    logger.info(f"Export directory ready: {directory}")
    return directory


def _existing_ancestor(path: Path) -> Path:
    path = Path(path).resolve()
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


def check_storage_space(root: Path, required_bytes: int, safety_margin_bytes: int = 0) -> int:
    """
    Ensure the filesystem holding ``root`` has room for ``required_bytes``.

    Works before ``root`` exists by checking its nearest existing ancestor.

    Returns:
        Free bytes available

    Raises:
        InsufficientStorageError: If free space is below required + margin
    """
    anchor = _existing_ancestor(root)
    free = shutil.disk_usage(anchor).free
    needed = required_bytes + safety_margin_bytes
    if free < needed:
        raise InsufficientStorageError(needed, free, str(anchor))

    logger.debug(f"Storage check ok: {free} bytes free, {needed} needed at {anchor}")
    return free


def directory_size(path: Path) -> int:
    """Total size of all files below ``path``."""
    return sum(f.stat().st_size for f in Path(path).rglob("*") if f.is_file())


def _export_directories(root: Path) -> List[Path]:
    root = Path(root)
    if not root.is_dir():
        return []
    return [
        entry for entry in root.iterdir()
        if entry.is_dir() and _CHECKUP_MARKER in entry.name
    ]


def list_exports(root: Path) -> List[Dict[str, Any]]:
    """Export directories under ``root``, newest first."""
    exports = []
    for directory in _export_directories(root):
        modified = datetime.fromtimestamp(directory.stat().st_mtime)
        exports.append({
            "name": directory.name,
            "path": str(directory),
            "size_bytes": directory_size(directory),
            "modified_at": modified.isoformat(),
        })
    exports.sort(key=lambda export: export["modified_at"], reverse=True)
    return exports


def cleanup_old_exports(
    root: Path,
    older_than_days: int,
    now: Optional[datetime] = None,
) -> int:
    """
    Delete export directories last modified more than ``older_than_days`` ago.

    Directories that cannot be removed are logged and left in place.

    Returns:
        Number of directories removed
    """
    if older_than_days < 0:
        raise ValueError("older_than_days must not be negative")

    cutoff = (now or datetime.now()) - timedelta(days=older_than_days)
    removed = 0
    for directory in _export_directories(root):
        if datetime.fromtimestamp(directory.stat().st_mtime) >= cutoff:
            continue
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.warning(f"Could not remove old export {directory.name}: {e}")
            continue
        removed += 1
        logger.info(f"Removed old export {directory.name}")

    logger.info(f"Cleanup finished: {removed} export(s) older than {older_than_days} days removed")
    return removed

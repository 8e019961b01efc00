"""
Photo export manager.

Walks a checkup's module -> check item -> photo tree, names and processes
every photo into a ``FOTO`` folder, and optionally writes ``INDICE_FOTO.txt``
mapping each exported file back to its check item.

Failure policy:
    - A photo that cannot be processed is logged and skipped
    - The index is best-effort; failing to write it never fails the export
    - Cancellation is checked before each photo, never during one
"""

from __future__ import annotations

import time
from datetime import datetime
from itertools import groupby
from pathlib import Path
from typing import List, Optional, Sequence, Set, Tuple

from core.cancellation import CancellationToken
from core.exceptions import PhotoProcessingError
from models.checkup import CheckupSnapshot
from models.export_options import PhotoNamingStrategy, PhotoQuality
from models.export_result import ExportedPhoto, PhotoContext, PhotoExportResult
from modules import text_formatter as fmt
from modules.photo_policy import make_unique, photo_file_name, process_photo
from logging_config import get_logger


logger = get_logger(__name__)

PHOTO_FOLDER_NAME = "FOTO"
PHOTO_INDEX_FILE_NAME = "INDICE_FOTO.txt"


def collect_photo_contexts(snapshot: CheckupSnapshot) -> List[PhotoContext]:
    """Flatten the snapshot into photos in module, item, photo order."""
    contexts: List[PhotoContext] = []
    for section_index, module in enumerate(snapshot.modules):
        for item in module.items:
            for photo_index, photo in enumerate(item.photos):
                contexts.append(
                    PhotoContext(
                        photo=photo,
                        section_index=section_index,
                        section_title=module.name,
                        item_id=item.id,
                        item_title=item.description,
                        item_status=item.status,
                        item_criticality=item.criticality,
                        photo_index=photo_index,
                    )
                )
    return contexts


def plan_file_names(
    contexts: Sequence[PhotoContext],
    strategy: PhotoNamingStrategy,
) -> List[str]:
    """
    Exported file name of every context, duplicates suffixed.

    Both the photo folder and the text report use this, so they always
    reference the same names.
    """
    used: Set[str] = set()
    return [
        make_unique(photo_file_name(context, index, strategy), used)
        for index, context in enumerate(contexts)
    ]


class PhotoExportManager:
    """
    Exports a checkup's photos into a folder.

    Stateless apart from configuration; one instance can serve every export
    thread.
    """

    def __init__(self, default_max_width: int = 1920):
        self.default_max_width = default_max_width

    def export_photos(
        self,
        snapshot: CheckupSnapshot,
        target_dir: Path,
        strategy: PhotoNamingStrategy = PhotoNamingStrategy.STRUCTURED,
        quality: PhotoQuality = PhotoQuality.OPTIMIZED,
        max_width: Optional[int] = None,
        generate_index: bool = True,
        cancel_token: Optional[CancellationToken] = None,
        contexts: Optional[Sequence[PhotoContext]] = None,
    ) -> PhotoExportResult:
        """
        Export every photo of ``snapshot`` into ``target_dir/FOTO``.

        Args:
            snapshot: Checkup to export
            target_dir: Directory that receives the FOTO folder
            strategy: File naming strategy
            quality: Processing tier
            max_width: Target width for re-encoded tiers (default from config)
            generate_index: Write INDICE_FOTO.txt after the photos
            cancel_token: Checked before each photo
            contexts: Export only these photos (default: every photo)

        Returns:
            PhotoExportResult with exported and skipped photos

        Raises:
            ExportCancelledError: If cancelled between two photos
            OSError: If the FOTO folder itself cannot be created
        """
        folder = Path(target_dir) / PHOTO_FOLDER_NAME
        folder.mkdir(parents=True, exist_ok=True)

        if contexts is None:
            contexts = collect_photo_contexts(snapshot)
        if not contexts:
            logger.info("No photos to export")
            return PhotoExportResult(export_directory=str(folder))

        width = max_width or self.default_max_width
        names = plan_file_names(contexts, strategy)

        logger.info(
            f"Exporting {len(contexts)} photos to {folder} "
            f"({strategy.value} names, {quality.value} quality)"
        )

        exported: List[ExportedPhoto] = []
        skipped: List[Tuple[str, str]] = []

        for context, file_name in zip(contexts, names):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(f"photo {file_name}")

            source = Path(context.photo.file_path)
            target = folder / file_name
            started = time.monotonic()
            try:
                size = process_photo(source, target, quality, width)
            except PhotoProcessingError as e:
                logger.warning(f"Skipping photo {context.photo.id}: {e.reason}")
                skipped.append((context.photo.id, e.reason))
                continue

            exported.append(
                ExportedPhoto(
                    context=context,
                    file_name=file_name,
                    path=str(target),
                    size_bytes=size,
                    original_size_bytes=source.stat().st_size,
                    jpeg_quality=quality.jpeg_quality,
                    processing_time_ms=int((time.monotonic() - started) * 1000),
                )
            )

        index_path = None
        if generate_index:
            index_path = self.write_photo_index(snapshot, folder, exported, skipped)

        logger.info(
            f"Photo export finished: {len(exported)} exported, {len(skipped)} skipped"
        )
        return PhotoExportResult(
            export_directory=str(folder),
            exported_photos=tuple(exported),
            skipped=tuple(skipped),
            index_file_path=index_path,
        )

    # =========================================================================
    # INDEX
    # =========================================================================

    def write_photo_index(
        self,
        snapshot: CheckupSnapshot,
        folder: Path,
        exported: Sequence[ExportedPhoto],
        skipped: Sequence[Tuple[str, str]] = (),
    ) -> Optional[str]:
        """
        Write INDICE_FOTO.txt; returns its path, or None if it could not be written.
        """
        try:
            content = render_photo_index(snapshot, exported, skipped)
            index_file = folder / PHOTO_INDEX_FILE_NAME
            index_file.write_text(content, encoding="utf-8")
        except (OSError, ValueError) as e:
            logger.warning(f"Photo index not written: {e}")
            return None

        logger.debug(f"Photo index written: {index_file}")
        return str(index_file)


def render_photo_index(
    snapshot: CheckupSnapshot,
    exported: Sequence[ExportedPhoto],
    skipped: Sequence[Tuple[str, str]] = (),
    now: Optional[datetime] = None,
) -> str:
    """Photo index text, grouped by module then check item."""
    now = now or datetime.now()
    lines = [
        "# INDICE FOTO - CHECKUP",
        f"# Cliente: {snapshot.client_name}",
        f"# Tecnico: {snapshot.technician_name}",
        f"# Generato: {now:%d/%m/%Y %H:%M}",
        fmt.separator("="),
        "",
    ]

    by_section = groupby(exported, key=lambda p: (p.context.section_index, p.context.section_title))
    items_with_photos = 0
    sections_with_photos = 0
    for (section_index, section_title), section_photos in by_section:
        sections_with_photos += 1
        lines.append(f"MODULO {section_index + 1}: {section_title}")
        lines.append(fmt.separator("-", 50))

        for _, item_photos in groupby(section_photos, key=lambda p: p.context.item_id):
            item_photos = list(item_photos)
            items_with_photos += 1
            context = item_photos[0].context
            lines.append(f"  Check Item: {context.item_title}")
            lines.append(
                f"  Stato: {context.item_status.display_name} | "
                f"Criticità: {context.item_criticality.display_name}"
            )
            lines.append("  Foto:")
            for photo in item_photos:
                lines.append(f"    - {photo.file_name}")
                if photo.context.photo.caption:
                    lines.append(f"      Caption: {photo.context.photo.caption}")
                lines.append(f"      Dimensione: {fmt.format_file_size(photo.size_bytes)}")
            lines.append("")
        lines.append("")

    total_size = sum(photo.size_bytes for photo in exported)
    lines.extend([
        fmt.separator("="),
        "RIEPILOGO:",
        f"Foto totali: {len(exported)}",
        f"Moduli: {sections_with_photos}",
        f"Check items con foto: {items_with_photos}",
        f"Dimensione totale: {fmt.format_file_size(total_size)}",
    ])
    if skipped:
        lines.append(f"Foto non esportate: {len(skipped)}")
        lines.extend(f"  - {photo_id}: {reason}" for photo_id, reason in skipped)

    return "\n".join(lines) + "\n"

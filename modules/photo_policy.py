"""
Photo naming and quality policy.

Naming is a pure function of a photo's context, its global position and
the chosen strategy, so the text report and the photo folder always agree
on file names without sharing state.

Quality tiers map to processing functions:
    ORIGINAL    byte-for-byte copy, modification time preserved
    OPTIMIZED   re-encode at the target width, JPEG quality 85
    COMPRESSED  re-encode at 60% of the target width, JPEG quality 70

Processing failures raise PhotoProcessingError; the photo export manager
decides what to do with them.
"""

from __future__ import annotations

import re
import shutil
import time
import unicodedata
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from PIL import Image, ImageOps, UnidentifiedImageError

from core.exceptions import PhotoProcessingError
from models.export_options import PhotoNamingStrategy, PhotoQuality
from models.export_result import PhotoContext
from logging_config import get_logger


logger = get_logger(__name__)

PHOTO_EXTENSION = ".jpg"
MAX_FILE_NAME_LENGTH = 80

# Per-segment caps keep every part of a structured name visible:
# 2 + 1 + 20 + 1 + 30 + 1 + 20 + len(".jpg") = 79
SECTION_SEGMENT_LENGTH = 20
ITEM_SEGMENT_LENGTH = 30
PHOTO_SEGMENT_LENGTH = 20


# =============================================================================
# NAMING
# =============================================================================

def normalize_segment(text: str, fallback: str, max_length: Optional[int] = None) -> str:
    """
    Reduce free text to ``[a-z0-9-]``.

    Accents are folded to ASCII ("Qualità" -> "qualita"), whitespace runs
    become a single hyphen, everything else is dropped. Returns
    ``fallback`` when nothing survives.
    """
    folded = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    segment = re.sub(r"\s+", "-", folded.strip().lower())
    segment = re.sub(r"[^a-z0-9-]", "", segment)
    segment = re.sub(r"-{2,}", "-", segment).strip("-")
    if max_length is not None:
        segment = segment[:max_length].rstrip("-")
    return segment or fallback


def _fit(stem: str) -> str:
    limit = MAX_FILE_NAME_LENGTH - len(PHOTO_EXTENSION)
    return stem[:limit].rstrip("-_") + PHOTO_EXTENSION


def structured_name(context: PhotoContext) -> str:
    """``{NN}_{section}_{item}_{caption-or-fotoN}.jpg``"""
    section = normalize_segment(context.section_title, "modulo", SECTION_SEGMENT_LENGTH)
    item = normalize_segment(context.item_title, "controllo", ITEM_SEGMENT_LENGTH)
    fallback_photo = f"foto{context.photo_index + 1}"
    photo = (
        normalize_segment(context.photo.caption, fallback_photo, PHOTO_SEGMENT_LENGTH)
        if context.photo.caption
        else fallback_photo
    )
    return _fit(f"{context.section_ordinal:02d}_{section}_{item}_{photo}")


def sequential_name(global_index: int) -> str:
    return f"foto_{global_index + 1:03d}{PHOTO_EXTENSION}"


def timestamp_name(context: PhotoContext, global_index: int) -> str:
    taken_at = context.photo.taken_at
    stamp = taken_at.strftime("%Y%m%d_%H%M%S") if taken_at else "00000000_000000"
    return f"{stamp}_{global_index + 1:03d}{PHOTO_EXTENSION}"


def photo_file_name(
    context: PhotoContext,
    global_index: int,
    strategy: PhotoNamingStrategy,
) -> str:
    """
    Compute the exported file name of one photo.

    Args:
        context: Photo and its position in the checkup
        global_index: 0-based position in the flattened photo list
        strategy: Naming strategy of the export

    Returns:
        File name (no directory), always ending in ``.jpg``
    """
    if strategy == PhotoNamingStrategy.SEQUENTIAL:
        return sequential_name(global_index)
    if strategy == PhotoNamingStrategy.TIMESTAMP:
        return timestamp_name(context, global_index)
    return structured_name(context)


def make_unique(name: str, used: Set[str]) -> str:
    """
    Return ``name``, or ``name`` with a ``-N`` suffix if it is already in ``used``.

    The returned name is added to ``used``. Suffixed names still respect
    the length limit.
    """
    if name not in used:
        used.add(name)
        return name

    stem = name[: -len(PHOTO_EXTENSION)]
    counter = 2
    while True:
        suffix = f"-{counter}"
        limit = MAX_FILE_NAME_LENGTH - len(PHOTO_EXTENSION) - len(suffix)
        candidate = stem[:limit].rstrip("-_") + suffix + PHOTO_EXTENSION
        if candidate not in used:
            used.add(candidate)
            return candidate
        counter += 1


# =============================================================================
# QUALITY PROCESSING
# =============================================================================

def copy_verbatim(source: Path, target: Path, max_width: int) -> None:
    """Copy bytes and metadata (modification time included); ``max_width`` is ignored."""
    shutil.copy2(source, target)


def _reencode(source: Path, target: Path, target_width: int, jpeg_quality: int) -> None:
    with Image.open(source) as opened:
        image = ImageOps.exif_transpose(opened)
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        if image.width > target_width:
            height = max(round(image.height * target_width / image.width), 1)
            image = image.resize((target_width, height), Image.Resampling.LANCZOS)
        image.save(target, "JPEG", quality=jpeg_quality, optimize=True)


def reencode_optimized(source: Path, target: Path, max_width: int) -> None:
    quality = PhotoQuality.OPTIMIZED
    _reencode(source, target, int(max_width * quality.width_factor), quality.jpeg_quality)


def reencode_compressed(source: Path, target: Path, max_width: int) -> None:
    quality = PhotoQuality.COMPRESSED
    _reencode(source, target, int(max_width * quality.width_factor), quality.jpeg_quality)


QUALITY_PROCESSORS: Dict[PhotoQuality, Callable[[Path, Path, int], None]] = {
    PhotoQuality.ORIGINAL: copy_verbatim,
    PhotoQuality.OPTIMIZED: reencode_optimized,
    PhotoQuality.COMPRESSED: reencode_compressed,
}


def process_photo(
    source: Path,
    target: Path,
    quality: PhotoQuality,
    max_width: int,
) -> int:
    """
    Write ``source`` to ``target`` using the processor of ``quality``.

    Returns:
        Size in bytes of the written file

    Raises:
        PhotoProcessingError: If the source is missing, unreadable or not an image
    """
    if not source.is_file():
        raise PhotoProcessingError(str(source), "source file not found")

    started = time.monotonic()
    try:
        QUALITY_PROCESSORS[quality](source, target, max_width)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError) as e:
        # Don't leave half-written files behind
        target.unlink(missing_ok=True)
        raise PhotoProcessingError(str(source), str(e)) from e

    size = target.stat().st_size
    logger.debug(
        f"Processed {source.name} -> {target.name} ({quality.value}, "
        f"{size} bytes, {(time.monotonic() - started) * 1000:.0f} ms)"
    )
    return size

"""
Export request configuration.

ExportOptions is built once per export request and handed, unchanged, to
the orchestrator and every generator.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Tuple


class ExportFormat(Enum):
    """
    Output formats, declared in processing order.

    The orchestrator always runs requested formats in this order:
        DOCUMENT -> TEXT -> PHOTO_FOLDER -> COMBINED_PACKAGE
    """

    DOCUMENT = "document"
    """Structured office document (.docx) with embedded photos."""

    TEXT = "text"
    """Plain-text report (.txt)."""

    PHOTO_FOLDER = "photo_folder"
    """FOTO/ folder with renamed photos and an optional index."""

    COMBINED_PACKAGE = "combined_package"
    """All three of the above in one directory plus INDICE_PACKAGE.txt."""

    @classmethod
    def in_processing_order(cls, formats) -> Tuple["ExportFormat", ...]:
        """Sort any collection of formats into processing order."""
        return tuple(fmt for fmt in cls if fmt in formats)


class PhotoNamingStrategy(Enum):
    """How exported photo files are named."""

    STRUCTURED = "structured"
    """``01_module_item_caption.jpg`` derived from the photo's context."""

    SEQUENTIAL = "sequential"
    """``foto_001.jpg``, ``foto_002.jpg``, ... in traversal order."""

    TIMESTAMP = "timestamp"
    """``20250114_093012_001.jpg`` from the capture time."""


class PhotoQuality(Enum):
    """Processing tier applied to every exported photo."""

    ORIGINAL = "original"
    """Byte-for-byte copy, modification time preserved."""

    OPTIMIZED = "optimized"
    """Re-encoded at the target width, most detail kept."""

    COMPRESSED = "compressed"
    """Re-encoded smaller and at lower JPEG quality."""

    @property
    def jpeg_quality(self) -> int:
        return {
            PhotoQuality.ORIGINAL: 100,
            PhotoQuality.OPTIMIZED: 85,
            PhotoQuality.COMPRESSED: 70,
        }[self]

    @property
    def width_factor(self) -> float:
        """Multiplier applied to the configured target width."""
        return {
            PhotoQuality.ORIGINAL: 1.0,
            PhotoQuality.OPTIMIZED: 1.0,
            PhotoQuality.COMPRESSED: 0.6,
        }[self]


@dataclass(frozen=True)
class ExportOptions:
    """
    Immutable configuration of one export request.

    Use the preset constructors for the common cases; build the dataclass
    directly for anything else.
    """

    formats: FrozenSet[ExportFormat] = frozenset({ExportFormat.DOCUMENT})
    """Requested output formats (at least one)."""

    include_photos: bool = True
    """Embed/list photos in the document and text report."""

    include_notes: bool = True
    """Print check item notes."""

    naming_strategy: PhotoNamingStrategy = PhotoNamingStrategy.STRUCTURED
    photo_quality: PhotoQuality = PhotoQuality.OPTIMIZED

    photo_max_width: int = 1920
    """Target pixel width for re-encoded tiers."""

    create_timestamped_directory: bool = True
    """Create a unique ``{timestamp}_Checkup_...`` directory under the root."""

    generate_photo_index: bool = True
    """Write FOTO/INDICE_FOTO.txt next to the exported photos."""

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    @classmethod
    def document_only(cls) -> "ExportOptions":
        return cls(formats=frozenset({ExportFormat.DOCUMENT}))

    @classmethod
    def text_only(cls) -> "ExportOptions":
        return cls(formats=frozenset({ExportFormat.TEXT}), include_photos=False)

    @classmethod
    def photo_archive(cls) -> "ExportOptions":
        """Photo folder only, full-quality copies with descriptive names."""
        return cls(
            formats=frozenset({ExportFormat.PHOTO_FOLDER}),
            photo_quality=PhotoQuality.ORIGINAL,
            naming_strategy=PhotoNamingStrategy.STRUCTURED,
        )

    @classmethod
    def complete_package(cls) -> "ExportOptions":
        return cls(formats=frozenset({ExportFormat.COMBINED_PACKAGE}))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def ordered_formats(self) -> Tuple[ExportFormat, ...]:
        return ExportFormat.in_processing_order(self.formats)

    def is_format_enabled(self, export_format: ExportFormat) -> bool:
        return export_format in self.formats

    @property
    def exports_photo_files(self) -> bool:
        """Whether any requested format writes photo files to disk."""
        return (
            ExportFormat.PHOTO_FOLDER in self.formats
            or ExportFormat.COMBINED_PACKAGE in self.formats
            or (ExportFormat.DOCUMENT in self.formats and self.include_photos)
        )

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors: List[str] = []
        if not self.formats:
            errors.append("At least one export format must be selected")
        if self.photo_max_width <= 0:
            errors.append("Photo target width must be a positive number of pixels")
        if ExportFormat.PHOTO_FOLDER in self.formats and not self.include_photos:
            errors.append("Photo folder export requires photos to be included")
        return errors

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formats": [fmt.value for fmt in self.ordered_formats],
            "include_photos": self.include_photos,
            "include_notes": self.include_notes,
            "naming_strategy": self.naming_strategy.value,
            "photo_quality": self.photo_quality.value,
            "photo_max_width": self.photo_max_width,
            "create_timestamped_directory": self.create_timestamped_directory,
            "generate_photo_index": self.generate_photo_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExportOptions":
        """
        Create from a request dictionary.

        Raises:
            ValueError: If a format, strategy or quality value is unknown
        """
        defaults = cls()
        formats = data.get("formats")
        return cls(
            formats=(
                frozenset(ExportFormat(value) for value in formats)
                if formats is not None else defaults.formats
            ),
            include_photos=bool(data.get("include_photos", defaults.include_photos)),
            include_notes=bool(data.get("include_notes", defaults.include_notes)),
            naming_strategy=PhotoNamingStrategy(
                data.get("naming_strategy", defaults.naming_strategy.value)
            ),
            photo_quality=PhotoQuality(
                data.get("photo_quality", defaults.photo_quality.value)
            ),
            photo_max_width=int(data.get("photo_max_width", defaults.photo_max_width)),
            create_timestamped_directory=bool(
                data.get("create_timestamped_directory", defaults.create_timestamped_directory)
            ),
            generate_photo_index=bool(
                data.get("generate_photo_index", defaults.generate_photo_index)
            ),
        )

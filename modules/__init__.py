"""Helper modules for the QReport export service."""

__all__ = [
    "document_generator",
    "estimator",
    "export_files",
    "photo_export",
    "photo_policy",
    "snapshot_mapper",
    "text_formatter",
    "text_report",
]

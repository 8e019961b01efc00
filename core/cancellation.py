"""
Cooperative cancellation for export jobs.

The job service owns one token per export and hands it down to the
orchestrator and the photo export manager. Workers poll the token only at
unit-of-work boundaries, so a photo that is being written is always
finished before the export stops.
"""

from __future__ import annotations

import threading

from core.exceptions import ExportCancelledError


class CancellationToken:
    """Thread-safe cancel flag backed by a threading.Event."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str | None = None) -> None:
        """
        Raise ExportCancelledError when cancellation was requested.

        Args:
            stage: Name of the unit of work about to start (for the message)
        """
        if self._event.is_set():
            raise ExportCancelledError(stage)

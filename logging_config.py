"""
Centralized logging configuration for the QReport export service.

Exports run in background threads, one per checkup. Every log record is
stamped with the name of the thread that produced it so a single export
can be followed through the orchestrator, the generators and the photo
pipeline.

Log Format:
    2025-12-03 10:15:30 [INFO    ] [MainThread] qreport_export.app - Starting application
    2025-12-03 10:15:31 [INFO    ] [Export-a1b2c3d4] qreport_export.services.export_orchestrator - Stage document complete
    2025-12-03 10:15:32 [WARNING ] [Export-a1b2c3d4] qreport_export.modules.photo_export - Skipping photo p-17

Usage:
    # At application startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    # In modules
    logger = get_logger(__name__)

    # Inside an export thread
    job_logger = get_job_logger(job_id)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional


APP_LOGGER_NAME = "qreport_export"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every decoded image or zip member at DEBUG
NOISY_LIBRARIES = ("PIL", "docx")


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Adds ``thread_name`` and ``thread_id`` to every record.

    Never drops a record; it only decorates it for the format string.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    thread_filter: logging.Filter,
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,  # 10 MB per file
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(thread_filter)
    return handler


def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure application logging with thread context.

    Installs a console handler and, when ``enable_file_logging`` is set,
    a rotating application log plus a separate ERROR-only log. Calling it
    again replaces the previous handlers.

    Args:
        app_name: Name of the application root logger
        log_level: Minimum log level
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write to log files

    Returns:
        Configured application root logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False  # Prevent duplicate logs to root logger
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        logger.addHandler(
            _rotating_handler(app_log_file, log_level, formatter, thread_filter)
        )
        logger.addHandler(
            _rotating_handler(
                log_dir / f"{app_name}_error.log", logging.ERROR, formatter, thread_filter
            )
        )
        logger.info(f"File logging enabled: {app_log_file}")

    quiet_libraries(NOISY_LIBRARIES)

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def quiet_libraries(names: Iterable[str], level: int = logging.WARNING) -> None:
    """Raise the threshold of third-party loggers that are chatty at DEBUG."""
    for name in names:
        logging.getLogger(name).setLevel(level)


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Example:
        # In services/export_orchestrator.py
        logger = get_logger(__name__)
        # Logger name: "qreport_export.services.export_orchestrator"
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"

    return logging.getLogger(name)


def get_job_logger(job_id: str) -> logging.Logger:
    """
    Get a logger for one export job.

    Only the first 8 characters of the job ID are used, which matches the
    thread name given to the export worker.

    Example:
        job_logger = get_job_logger("a1b2c3d4-e5f6-7890-...")
        # Logger name: "qreport_export.export.a1b2c3d4"
    """
    short_id = job_id[:8] if len(job_id) >= 8 else job_id
    return logging.getLogger(f"{APP_LOGGER_NAME}.export.{short_id}")


def set_thread_name(name: str) -> None:
    """
    Rename the current thread; the name shows up in the [thread_name] field.

    Example:
        set_thread_name(f"Export-{job_id[:8]}")
    """
    threading.current_thread().name = name

"""
QReport export service - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up thread-aware logging
2. Prepares the export root and runs the startup cleanup sweep
3. Builds the orchestrator (generators, estimator, format exporters)
4. Creates the export job service (thread-per-export)
5. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (validation, estimates, polling)
    └── Cleanup on shutdown (cancel and join export threads)

    Export Threads (one per export, at most one per checkup)
    └── Each runs ExportOrchestrator.run() and publishes states to the store

The orchestrator is shared by all export threads; it keeps no per-export state.
"""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Union

from flask import Flask
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.exceptions import (
    ExportJobConflictError,
    ExportJobNotFoundError,
    ExportValidationError,
    InsufficientStorageError,
    QReportExportError,
)
from modules import export_files
from services.export_orchestrator import ExportOrchestrator
from services.export_job_service import ExportJobService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _error_status(error: QReportExportError) -> int:
    if isinstance(error, ExportJobNotFoundError):
        return 404
    if isinstance(error, ExportJobConflictError):
        return 409
    if isinstance(error, ExportValidationError):
        return 422
    if isinstance(error, InsufficientStorageError):
        return 507
    return 500


def create_app(config_object: Union[str, type] = "config.Config") -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Configuration class, or its import path

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting QReport export service in {app.config.get('ENVIRONMENT')} mode")

    # Ensure export root exists
    export_root = Path(app.config["EXPORT_ROOT_DIR"])
    export_root.mkdir(parents=True, exist_ok=True)
    app.config["EXPORT_ROOT_DIR"] = export_root

    cleanup_days = app.config.get("EXPORT_CLEANUP_DAYS", 0)
    if cleanup_days > 0:
        export_files.cleanup_old_exports(export_root, cleanup_days)

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    orchestrator = ExportOrchestrator.create_default(
        export_root,
        photo_max_width=app.config["EXPORT_PHOTO_MAX_WIDTH"],
        max_photos_per_module=app.config["DOCUMENT_MAX_PHOTOS_PER_MODULE"],
        storage_margin_bytes=app.config["STORAGE_SAFETY_MARGIN_BYTES"],
    )
    app.config["EXPORT_ORCHESTRATOR"] = orchestrator

    job_service = ExportJobService(
        orchestrator,
        join_timeout=app.config["EXPORT_JOB_JOIN_TIMEOUT"],
    )
    app.config["EXPORT_JOB_SERVICE"] = job_service
    logger.info("Export job service initialized")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        job_service.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(QReportExportError)
    def handle_export_error(e: QReportExportError):
        status = _error_status(e)
        if status >= 500:
            logger.error(f"Export error: {e}")
        body = {"error": type(e).__name__, "message": e.message, "details": e.details}
        if isinstance(e, ExportValidationError):
            body["messages"] = e.messages
        return body, status

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 4 * 1024 * 1024) / (1024 * 1024)
        return {
            "error": "payload_too_large",
            "message": f"Request too large. Maximum size is {max_mb:.0f} MB.",
        }, 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return {"error": "not_found", "message": "Resource not found."}, 404

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "internal_error", "message": "An unexpected error occurred."}, 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return {"error": e.name.lower().replace(" ", "_"), "message": e.description}, e.code

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)

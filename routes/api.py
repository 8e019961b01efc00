"""
API routes.

Handles:
- /health - Health check endpoint
"""

import os
from pathlib import Path

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Check export root
    export_root = Path(current_app.config.get("EXPORT_ROOT_DIR", ""))
    if export_root.is_dir() and os.access(export_root, os.W_OK):
        health_status["checks"]["export_root"] = "writable"
    else:
        health_status["checks"]["export_root"] = "not_writable"
        health_status["status"] = "degraded"

    # Check job service
    job_service = current_app.config.get("EXPORT_JOB_SERVICE")
    if job_service and job_service.is_accepting_jobs:
        health_status["checks"]["job_service"] = "ok"
    else:
        health_status["checks"]["job_service"] = "not_available"
        health_status["status"] = "degraded"

    if health_status["status"] != "ok":
        logger.warning(f"Health check degraded: {health_status['checks']}")

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code

"""
Export routes (JSON API).

Handles:
- POST /exports/estimate         - Size/time estimate for a checkup
- POST /exports                  - Start a background export (202 + job id)
- GET  /exports/<job_id>         - Poll job state and latest progress
- POST /exports/<job_id>/cancel  - Request cancellation
- GET  /exports                  - List export directories and known jobs
- POST /exports/cleanup          - Delete exports older than N days

Request bodies carry the checkup record under ``checkup`` and the export
options under ``options``. Free-text fields are stripped of markup before
the record is mapped to a snapshot. When PHOTO_ROOT_DIR is configured,
photo paths are resolved against it and requests pointing outside it are
rejected.
"""

import html
from pathlib import Path
from typing import Any, Tuple

import bleach
from flask import Blueprint, current_app, request

from models.checkup import CheckupSnapshot
from models.export_options import ExportOptions
from modules import export_files
from modules.snapshot_mapper import resolve_photo_paths, snapshot_from_dict
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

exports_bp = Blueprint("exports", __name__, url_prefix="/exports")

# Constants
MAX_NOTES_LENGTH = 2000
MAX_CAPTION_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 500
MAX_CLEANUP_DAYS = 3650

FREE_TEXT_LIMITS = {
    "notes": MAX_NOTES_LENGTH,
    "caption": MAX_CAPTION_LENGTH,
    "description": MAX_DESCRIPTION_LENGTH,
}


class BadRequest(ValueError):
    """Malformed request body (answered with 400)."""


def _sanitize_text(text: str, max_length: int = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = text.strip()
    text = html.unescape(bleach.clean(text, tags=[], strip=True))
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _sanitize_record(value: Any) -> Any:
    """Return a copy of ``value`` with every free-text field sanitized."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            limit = FREE_TEXT_LIMITS.get(key)
            if limit and isinstance(item, str):
                cleaned[key] = _sanitize_text(item, limit)
            else:
                cleaned[key] = _sanitize_record(item)
        return cleaned
    if isinstance(value, list):
        return [_sanitize_record(item) for item in value]
    return value


def _parse_request() -> Tuple[CheckupSnapshot, ExportOptions]:
    """
    Read ``{checkup, options}`` from the JSON body.

    Raises:
        BadRequest: If the body is not JSON or cannot be mapped
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")

    checkup = body.get("checkup")
    if not isinstance(checkup, dict):
        raise BadRequest("'checkup' must be a JSON object")

    raw_options = body.get("options") or {}
    if not isinstance(raw_options, dict):
        raise BadRequest("'options' must be a JSON object")

    try:
        snapshot = snapshot_from_dict(_sanitize_record(checkup))
        options = ExportOptions.from_dict(raw_options)
        photo_root = current_app.config.get("PHOTO_ROOT_DIR")
        if photo_root:
            snapshot = resolve_photo_paths(snapshot, Path(photo_root))
    except (AttributeError, TypeError, ValueError) as e:
        raise BadRequest(str(e)) from e

    return snapshot, options


def _bad_request(message: str):
    return {"error": "bad_request", "message": message}, 400


def _services():
    return current_app.config["EXPORT_ORCHESTRATOR"], current_app.config["EXPORT_JOB_SERVICE"]


@exports_bp.route("/estimate", methods=["POST"])
def estimate():
    """Advisory size/time estimate; nothing is written."""
    try:
        snapshot, options = _parse_request()
    except BadRequest as e:
        return _bad_request(str(e))

    orchestrator, _ = _services()
    report = orchestrator.estimate(snapshot, options)
    return report.to_dict()


@exports_bp.route("", methods=["POST"])
def start_export():
    """
    Validate and queue an export.

    Validation runs here, synchronously, so the caller gets every message
    at once and no job (or directory) is created for an invalid checkup.
    """
    try:
        snapshot, options = _parse_request()
    except BadRequest as e:
        return _bad_request(str(e))

    orchestrator, job_service = _services()
    messages = orchestrator.validate(snapshot, options)
    if messages:
        logger.info(f"Export request for {snapshot.checkup_id[:8]} rejected: {messages}")
        return {"error": "validation_failed", "messages": messages}, 422

    job_id = job_service.submit(snapshot, options)
    return {"job_id": job_id, "status_url": f"/exports/{job_id}"}, 202


@exports_bp.route("/<job_id>", methods=["GET"])
def job_state(job_id: str):
    _, job_service = _services()
    return job_service.get_state(job_id).to_dict()


@exports_bp.route("/<job_id>/cancel", methods=["POST"])
def cancel_job(job_id: str):
    _, job_service = _services()
    signalled = job_service.cancel(job_id)
    state = job_service.get_state(job_id)
    return {"job_id": job_id, "cancel_requested": signalled, "status": state.status.value}


@exports_bp.route("", methods=["GET"])
def list_exports():
    _, job_service = _services()
    root = current_app.config["EXPORT_ROOT_DIR"]
    return {
        "export_root": str(root),
        "exports": export_files.list_exports(root),
        "jobs": [state.to_dict() for state in job_service.list_states()],
    }


@exports_bp.route("/cleanup", methods=["POST"])
def cleanup():
    """Delete export directories older than ``older_than_days``."""
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _bad_request("Request body must be a JSON object")

    days = body.get("older_than_days", current_app.config["EXPORT_CLEANUP_DAYS"])
    try:
        days = int(days)
    except (TypeError, ValueError):
        return _bad_request("'older_than_days' must be an integer")
    if days < 0 or days > MAX_CLEANUP_DAYS:
        return _bad_request(f"'older_than_days' must be between 0 and {MAX_CLEANUP_DAYS}")

    removed = export_files.cleanup_old_exports(current_app.config["EXPORT_ROOT_DIR"], days)
    return {"removed": removed, "older_than_days": days}


__all__ = ["exports_bp"]

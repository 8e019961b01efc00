"""
Configuration for the QReport export service.

All values can be overridden from the environment or a .env file.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 4 * 1024 * 1024  # 4 MB JSON payloads
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Export destination
    # ==========================================================================
    # EXPORT_ROOT_DIR: every export directory is created below this root.
    # EXPORT_CLEANUP_DAYS: export directories older than this are removed by
    #   the cleanup sweep (0 disables the sweep at startup).
    # ==========================================================================
    EXPORT_ROOT_DIR = os.environ.get(
        "EXPORT_ROOT_DIR", str(BASE_DIR / "exports")
    )
    EXPORT_CLEANUP_DAYS = int(os.environ.get("EXPORT_CLEANUP_DAYS", "30"))

    # PHOTO_ROOT_DIR: photo paths in export requests are resolved against this
    #   directory and rejected when they point outside it. Empty disables the
    #   check (paths are used as sent).
    PHOTO_ROOT_DIR = os.environ.get("PHOTO_ROOT_DIR", "")

    # Photo re-encoding target width (pixels) for the optimized tier.
    # The compressed tier scales this down further.
    EXPORT_PHOTO_MAX_WIDTH = int(os.environ.get("EXPORT_PHOTO_MAX_WIDTH", "1920"))

    # Seconds a replaced export job is given to stop before the new one starts
    EXPORT_JOB_JOIN_TIMEOUT = float(os.environ.get("EXPORT_JOB_JOIN_TIMEOUT", "10"))

    # Photos embedded in the document per module
    DOCUMENT_MAX_PHOTOS_PER_MODULE = int(
        os.environ.get("DOCUMENT_MAX_PHOTOS_PER_MODULE", "4")
    )

    # Extra free space demanded by the storage pre-flight check
    STORAGE_SAFETY_MARGIN_BYTES = int(
        os.environ.get("STORAGE_SAFETY_MARGIN_BYTES", str(5 * 1024 * 1024))
    )

    # ==========================================================================
    # Estimator Configuration
    # ==========================================================================
    # ESTIMATOR_AVG_PHOTO_BYTES: assumed size of one source photo on disk
    #   Default: 2000000 (typical phone camera JPEG)
    #
    # ESTIMATOR_LARGE_EXPORT_MB: total estimated size above which the
    #   estimate carries a "large export" warning
    #   Default: 100
    # ==========================================================================
    ESTIMATOR_AVG_PHOTO_BYTES = int(
        os.environ.get("ESTIMATOR_AVG_PHOTO_BYTES", "2000000")
    )
    ESTIMATOR_LARGE_EXPORT_MB = float(
        os.environ.get("ESTIMATOR_LARGE_EXPORT_MB", "100")
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    EXPORT_CLEANUP_DAYS = 0
    EXPORT_JOB_JOIN_TIMEOUT = 5.0

"""
Flask route blueprints for the QReport export service.

This module contains all route handlers organized by functionality:
- exports: Estimate, start, poll, cancel, list and clean up exports
- api: Health check

Each blueprint is registered with the Flask app in create_app().
"""

from .exports import exports_bp
from .api import api_bp

__all__ = [
    "exports_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(exports_bp)
    app.register_blueprint(api_bp)

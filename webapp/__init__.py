"""Health endpoint web application for the DDNS agent."""

from __future__ import annotations

from flask import Flask

from agent.health import HealthExporter
from webapp.routes import bp


def create_app(exporter: HealthExporter) -> Flask:
    """Create the Flask application that serves health snapshots."""
    app = Flask(__name__, static_folder=None)
    app.config.update(HEALTH_EXPORTER=exporter)
    app.json.sort_keys = False
    app.register_blueprint(bp)
    return app


__all__ = ["bp", "create_app"]

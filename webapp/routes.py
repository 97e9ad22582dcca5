"""HTTP routes exposing the agent's health state."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify

from agent.health import HealthExporter

bp = Blueprint("webapp", __name__)


def _get_exporter() -> HealthExporter:
    exporter = current_app.config.get("HEALTH_EXPORTER")
    if exporter is None:
        raise RuntimeError("HEALTH_EXPORTER is not configured")
    return exporter


@bp.get("/health")
def health() -> Any:
    payload, status_code = _get_exporter().render()
    return jsonify(payload), status_code


@bp.get("/status")
def status() -> Any:
    payload, status_code = _get_exporter().details()
    return jsonify(payload), status_code

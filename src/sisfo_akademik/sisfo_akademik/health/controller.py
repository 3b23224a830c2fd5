from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..core.constants import HEALTH_PATH, METRICS_PATH
from ..database.connection import DatabaseConnection
from ..observability.metrics import HttpMetrics


def register(app: Flask, *, service: str, conn: Optional[DatabaseConnection], metrics: HttpMetrics) -> None:
    @app.route(HEALTH_PATH, methods=["GET"], endpoint="health")
    def health():
        if conn is None:
            database = "unconfigured"
        else:
            database = "up" if conn.ping() else "down"
        status = 503 if database == "down" else 200
        return jsonify({"status": "ok" if status == 200 else "degraded", "service": service, "database": database}), status

    @app.route(METRICS_PATH, methods=["GET"], endpoint="metrics")
    def metrics_view():
        return app.response_class(generate_latest(metrics.registry), content_type=CONTENT_TYPE_LATEST)

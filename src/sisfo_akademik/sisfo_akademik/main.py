from __future__ import annotations

import importlib
import logging
from types import ModuleType
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .admission_periods.controller import register as register_periods
from .applications.controller import register as register_applications
from .common.http import register_http_edge
from .container import (
    AdmissionContainer,
    AttendanceContainer,
    build_admission_container,
    build_attendance_container,
)
from .core.constants import (
    DEFAULT_ADMISSION_HTTP_PORT,
    DEFAULT_ATTENDANCE_HTTP_PORT,
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    DEFAULT_UPLOAD_DIR,
    MAX_DOCUMENT_SIZE_BYTES,
)
from .database.bootstrap import apply_schema, list_tables
from .documents.controller import register as register_documents
from .health.controller import register as register_health
from .observability.logging import configure_logging
from .observability.metrics import build_http_metrics, instrument_app
from .student_attendance.controller import register as register_students
from .teacher_attendance.controller import register as register_teachers

ADMISSION_SERVICE = "admission-service"
ATTENDANCE_SERVICE = "attendance-service"

logger = logging.getLogger(__name__)


def load_settings() -> ModuleType:
    load_dotenv(override=False)
    return importlib.import_module(get_settings_module())


def _base_app(service: str, settings: ModuleType) -> Flask:
    configure_logging(
        service=service,
        level=str(getattr(settings, "LOG_LEVEL", "INFO")),
        json_output=bool(getattr(settings, "LOG_JSON", False)),
    )
    app = Flask(__name__)
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    register_http_edge(app)
    return app


def _init_db(settings: ModuleType) -> None:
    if not bool(getattr(settings, "AUTO_INIT_DB", False)):
        return
    db_config = dict(settings.DB_CONFIG)
    applied = apply_schema(db_config)
    logger.info(
        "schema ready db=%s@%s:%s/%s statements=%d tables=%d",
        db_config.get("user"), db_config.get("host"), db_config.get("port", 3306), db_config.get("database"),
        applied, len(list_tables(db_config)),
    )


def _timeout(settings: ModuleType) -> float:
    return float(getattr(settings, "OPERATION_TIMEOUT_SECONDS", DEFAULT_OPERATION_TIMEOUT_SECONDS))


def create_admission_app(
    container: Optional[AdmissionContainer] = None,
    settings: Optional[ModuleType] = None,
) -> Flask:
    settings = settings or load_settings()
    app = _base_app(ADMISSION_SERVICE, settings)
    # Room for multipart overhead; the 5 MiB document limit is enforced by the upload use case.
    app.config["MAX_CONTENT_LENGTH"] = MAX_DOCUMENT_SIZE_BYTES * 2

    if container is None:
        _init_db(settings)
        container = build_admission_container(
            db_config=dict(settings.DB_CONFIG),
            rabbitmq_url=str(getattr(settings, "RABBITMQ_URL", "") or ""),
            upload_dir=str(getattr(settings, "UPLOAD_DIR", DEFAULT_UPLOAD_DIR)),
            timeout=_timeout(settings),
        )

    metrics = build_http_metrics()
    instrument_app(app, metrics, service=ADMISSION_SERVICE)
    register_health(app, service=ADMISSION_SERVICE, conn=container.conn, metrics=metrics)

    register_periods(app, container)
    register_applications(app, container)
    register_documents(app, container)

    app.extensions["sisfo_container"] = container
    return app


def create_attendance_app(
    container: Optional[AttendanceContainer] = None,
    settings: Optional[ModuleType] = None,
) -> Flask:
    settings = settings or load_settings()
    app = _base_app(ATTENDANCE_SERVICE, settings)

    if container is None:
        _init_db(settings)
        container = build_attendance_container(
            db_config=dict(settings.DB_CONFIG),
            academic_service_url=str(getattr(settings, "ACADEMIC_SERVICE_URL", "") or ""),
            timeout=_timeout(settings),
        )

    metrics = build_http_metrics()
    instrument_app(app, metrics, service=ATTENDANCE_SERVICE)
    register_health(app, service=ATTENDANCE_SERVICE, conn=container.conn, metrics=metrics)

    register_students(app, container)
    register_teachers(app, container)

    app.extensions["sisfo_container"] = container
    return app


def _port(settings: ModuleType, default: int) -> int:
    port = getattr(settings, "APP_HTTP_PORT", None)
    return int(port) if port else default


def run_admission() -> None:
    settings = load_settings()
    app = create_admission_app(settings=settings)
    app.run(host="0.0.0.0", port=_port(settings, DEFAULT_ADMISSION_HTTP_PORT), debug=app.config["DEBUG"])


def run_attendance() -> None:
    settings = load_settings()
    app = create_attendance_app(settings=settings)
    app.run(host="0.0.0.0", port=_port(settings, DEFAULT_ATTENDANCE_HTTP_PORT), debug=app.config["DEBUG"])

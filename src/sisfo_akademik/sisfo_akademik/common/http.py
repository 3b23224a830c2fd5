"""JSON envelope shared by both services.

Success: ``{success: true, data, meta: {timestamp, request_id}}``.
Error: ``{success: false, error: {code, message, detail}, meta}``.
"""
from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from flask import Flask, g, jsonify, request
from flask.json.provider import DefaultJSONProvider
from werkzeug.exceptions import HTTPException

from ..core.exceptions import DomainError, ValidationError
from .datetime_utils import now_utc
from .validators import require_mapping

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ApiJSONProvider(DefaultJSONProvider):
    """ISO-8601 dates, plain enum values, UUIDs and dataclasses as JSON."""

    sort_keys = False

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, uuid.UUID):
            return str(o)
        if dataclasses.is_dataclass(o) and not isinstance(o, type):
            return {f.name: getattr(o, f.name) for f in dataclasses.fields(o) if not f.name.startswith("_")}
        return DefaultJSONProvider.default(o)


def current_request_id() -> str:
    rid = getattr(g, "request_id", None)
    if not rid:
        rid = str(uuid.uuid4())
        g.request_id = rid
    return rid


def _meta() -> dict:
    return {"timestamp": now_utc().isoformat() + "Z", "request_id": current_request_id()}


def success(data: Any = None, status: int = 200):
    return jsonify({"success": True, "data": data, "meta": _meta()}), status


def error(status: int, code: str, message: str, detail: Optional[str] = None):
    body = {
        "success": False,
        "error": {"code": code, "message": message, "detail": detail or ""},
        "meta": _meta(),
    }
    return jsonify(body), status


def json_body() -> Any:
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Invalid Input", detail="request body must be valid JSON")
    return require_mapping(data)


def register_http_edge(app: Flask) -> None:
    """Install request-id propagation and the error handlers."""

    app.json = ApiJSONProvider(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

    @app.after_request
    def _echo_request_id(response):
        response.headers[REQUEST_ID_HEADER] = current_request_id()
        return response

    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        if e.http_status >= 500:
            logger.error("request failed kind=%s: %s", e.kind, e.detail)
        else:
            logger.info("request rejected kind=%s: %s", e.kind, e.detail)
        return error(e.http_status, e.error_code, e.title if e.http_status >= 500 else e.message, e.detail)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        status = e.code or 500
        if status >= 500:
            code = "5001"
        else:
            code = {404: "4004", 405: "4005", 413: "4013"}.get(status, "4001")
        return error(status, code, e.name, e.description)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        logger.exception("unhandled error")
        return error(500, "5001", "Internal Server Error", "unexpected error")


TENANT_HEADER = "X-Tenant-ID"


def request_tenant() -> Optional[str]:
    """Tenant from the ``X-Tenant-ID`` header, else the ``tenant_id`` query arg."""

    tenant = request.headers.get(TENANT_HEADER) or request.args.get("tenant_id") or ""
    return tenant.strip() or None


def query_arg(name: str) -> Optional[str]:
    value = request.args.get(name, "").strip()
    return value or None

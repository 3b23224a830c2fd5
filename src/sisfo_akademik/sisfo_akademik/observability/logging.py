"""Process-wide logging setup.

Plain text for development, JSON lines (python-json-logger) when
``json_output`` is set. Every record gets the current request id when one
exists.
"""
from __future__ import annotations

import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict

from flask import g, has_request_context
from pythonjsonlogger.json import JsonFormatter


class RequestContextFilter(logging.Filter):
    def __init__(self, service: str):
        super().__init__()
        self.service = service

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        if not hasattr(record, "request_id"):
            record.request_id = getattr(g, "request_id", "-") if has_request_context() else "-"
        return True


class ServiceJsonFormatter(JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["service"] = getattr(record, "service", "-")
        log_record["request_id"] = getattr(record, "request_id", "-")


def build_logging_config(*, service: str, level: str = "INFO", json_output: bool = False) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": RequestContextFilter, "service": service},
        },
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(service)s %(request_id)s %(name)s: %(message)s",
            },
            "json": {
                "()": ServiceJsonFormatter,
                "format": "%(timestamp)s %(level)s %(logger)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level.upper(),
                "formatter": "json" if json_output else "standard",
                "filters": ["request_context"],
            },
        },
        "loggers": {
            "": {"handlers": ["console"], "level": level.upper()},
            "werkzeug": {"level": "WARNING"},
            "amqp": {"level": "WARNING"},
        },
    }


def configure_logging(*, service: str, level: str = "INFO", json_output: bool = False) -> None:
    logging.config.dictConfig(build_logging_config(service=service, level=level, json_output=json_output))

from __future__ import annotations

from typing import Any, Mapping

from flask import Flask

from ..common.http import json_body, success
from ..common.validators import require_datetime, require_uuid
from ..core.constants import ADMISSION_API_PREFIX
from ..core.exceptions import ValidationError
from ..container import AdmissionContainer
from .service import PeriodInput


def _period_input(body: Mapping[str, Any]) -> PeriodInput:
    is_active = body.get("is_active", False)
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")
    name = body.get("name")
    if not isinstance(name, str):
        raise ValidationError("name is required")
    return PeriodInput(
        name=name,
        start_date=require_datetime(body.get("start_date"), "start_date"),
        end_date=require_datetime(body.get("end_date"), "end_date"),
        is_active=is_active,
    )


def register(app: Flask, container: AdmissionContainer) -> None:
    prefix = ADMISSION_API_PREFIX
    periods = container.period_service

    @app.route(f"{prefix}/periods", methods=["POST"], endpoint="create_period")
    def create_period():
        return success(periods.create(_period_input(json_body())), 201)

    @app.route(f"{prefix}/periods", methods=["GET"], endpoint="list_periods")
    def list_periods():
        return success(list(periods.list()))

    @app.route(f"{prefix}/periods/active", methods=["GET"], endpoint="get_active_period")
    def get_active_period():
        return success(periods.get_active())

    @app.route(f"{prefix}/periods/<period_id>", methods=["GET"], endpoint="get_period")
    def get_period(period_id: str):
        return success(periods.get(require_uuid(period_id, "period_id")))

    @app.route(f"{prefix}/periods/<period_id>", methods=["PUT"], endpoint="update_period")
    def update_period(period_id: str):
        pid = require_uuid(period_id, "period_id")
        return success(periods.update(pid, _period_input(json_body())))

    @app.route(f"{prefix}/periods/<period_id>", methods=["DELETE"], endpoint="delete_period")
    def delete_period(period_id: str):
        periods.delete(require_uuid(period_id, "period_id"))
        return success({"message": "Admission period deleted"})

    @app.route(
        f"{prefix}/periods/<period_id>/calculate-final-scores",
        methods=["POST"],
        endpoint="calculate_final_scores",
    )
    def calculate_final_scores(period_id: str):
        pid = require_uuid(period_id, "period_id")
        updated = container.application_service.calculate_final_scores(pid)
        return success({"message": "Final scores calculated", "updated": updated})

    @app.route(f"{prefix}/periods/<period_id>/announce", methods=["POST"], endpoint="announce_results")
    def announce_results(period_id: str):
        pid = require_uuid(period_id, "period_id")
        body = json_body()
        return success(periods.announce_results(pid, body.get("passing_grade")))

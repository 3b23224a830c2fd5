from __future__ import annotations

from typing import Any, Optional

from flask import Flask

from ..common.http import json_body, query_arg, request_tenant, success
from ..common.validators import optional_uuid, require_uuid
from ..core.constants import ADMISSION_API_PREFIX
from ..core.enums import ApplicationStatus
from ..core.exceptions import ValidationError
from ..container import AdmissionContainer
from .model import ApplicationFilter, NewApplication


def _status(value: Any) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(
            "Invalid status",
            detail="status must be one of: " + ", ".join(s.value for s in ApplicationStatus),
        )


def _optional_status(value: Optional[str]) -> Optional[ApplicationStatus]:
    return _status(value) if value else None


def register(app: Flask, container: AdmissionContainer) -> None:
    prefix = ADMISSION_API_PREFIX
    applications = container.application_service

    @app.route(f"{prefix}/applications", methods=["POST"], endpoint="submit_application")
    def submit_application():
        body = json_body()
        tenant = body.get("tenant_id") if isinstance(body.get("tenant_id"), str) else None
        data = NewApplication(
            admission_period_id=require_uuid(body.get("admission_period_id"), "admission_period_id"),
            first_name=body.get("first_name"),
            last_name=body.get("last_name"),
            email=body.get("email"),
            phone_number=body.get("phone_number"),
            previous_school=body.get("previous_school"),
            average_score=body.get("average_score"),
            tenant_id=tenant or request_tenant(),
        )
        return success(applications.submit(data), 201)

    @app.route(f"{prefix}/applications/status", methods=["GET"], endpoint="get_application_status")
    def get_application_status():
        number = query_arg("registration_number")
        if not number:
            raise ValidationError("registration_number is required")
        app_ = applications.get_status(number)
        return success(
            {
                "registration_number": app_.registration_number,
                "status": app_.status,
                "first_name": app_.first_name,
                "last_name": app_.last_name,
                "final_score": app_.final_score,
            }
        )

    @app.route(f"{prefix}/applications", methods=["GET"], endpoint="list_applications")
    def list_applications():
        application_filter = ApplicationFilter(
            admission_period_id=optional_uuid(query_arg("admission_period_id"), "admission_period_id"),
            status=_optional_status(query_arg("status")),
            tenant_id=request_tenant(),
        )
        return success(list(applications.list(application_filter)))

    @app.route(f"{prefix}/applications/<application_id>", methods=["GET"], endpoint="get_application")
    def get_application(application_id: str):
        return success(applications.get(require_uuid(application_id, "application_id")))

    @app.route(f"{prefix}/applications/<application_id>/verify", methods=["PUT"], endpoint="verify_application")
    def verify_application(application_id: str):
        aid = require_uuid(application_id, "application_id")
        body = json_body()
        return success(applications.verify(aid, _status(body.get("status"))))

    @app.route(f"{prefix}/applications/<application_id>/test-score", methods=["POST"], endpoint="input_test_score")
    def input_test_score(application_id: str):
        aid = require_uuid(application_id, "application_id")
        return success(applications.input_test_score(aid, json_body().get("score")))

    @app.route(
        f"{prefix}/applications/<application_id>/interview-score",
        methods=["POST"],
        endpoint="input_interview_score",
    )
    def input_interview_score(application_id: str):
        aid = require_uuid(application_id, "application_id")
        return success(applications.input_interview_score(aid, json_body().get("score")))

    @app.route(f"{prefix}/applications/<application_id>/register", methods=["POST"], endpoint="register_student")
    def register_student(application_id: str):
        return success(applications.register(require_uuid(application_id, "application_id")))

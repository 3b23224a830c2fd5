from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask, request

from ..common.http import json_body, query_arg, request_tenant, success
from ..common.validators import optional_str, optional_uuid, require_date, require_mapping, require_uuid
from ..core.constants import ATTENDANCE_API_PREFIX
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from ..container import AttendanceContainer
from .model import NewStudentAttendance


def attendance_status(value: Any) -> AttendanceStatus:
    try:
        return AttendanceStatus(value)
    except ValueError:
        raise ValidationError(
            "Invalid status",
            detail="status must be one of: " + ", ".join(s.value for s in AttendanceStatus),
        )


def _new_attendance(body: Mapping[str, Any], tenant: Optional[str]) -> NewStudentAttendance:
    body_tenant = body.get("tenant_id")
    return NewStudentAttendance(
        student_id=require_uuid(body.get("student_id"), "student_id"),
        class_id=require_uuid(body.get("class_id"), "class_id"),
        semester_id=require_uuid(body.get("semester_id"), "semester_id"),
        attendance_date=require_date(body.get("attendance_date"), "attendance_date"),
        status=attendance_status(body.get("status")),
        notes=optional_str(body.get("notes"), "notes"),
        tenant_id=body_tenant if isinstance(body_tenant, str) and body_tenant.strip() else tenant,
        check_in_latitude=body.get("check_in_latitude"),
        check_in_longitude=body.get("check_in_longitude"),
    )


def _int_arg(name: str) -> int:
    value = query_arg(name)
    if value is None:
        raise ValidationError(f"{name} is required")
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}", detail=f"{name} must be an integer")


def register(app: Flask, container: AttendanceContainer) -> None:
    prefix = ATTENDANCE_API_PREFIX
    students = container.student_service

    @app.route(f"{prefix}/students", methods=["POST"], endpoint="create_student_attendance")
    def create_student_attendance():
        return success(students.create(_new_attendance(json_body(), request_tenant())), 201)

    @app.route(f"{prefix}/students/bulk", methods=["POST"], endpoint="bulk_create_student_attendance")
    def bulk_create_student_attendance():
        body = request.get_json(silent=True)
        if not isinstance(body, list):
            raise ValidationError("Invalid Input", detail="request body must be a JSON array")
        tenant = request_tenant()
        items = [_new_attendance(require_mapping(item), tenant) for item in body]
        rows = students.bulk_create(items)
        return success({"message": "Bulk attendance created", "count": len(rows)}, 201)

    @app.route(f"{prefix}/students", methods=["GET"], endpoint="list_student_attendance")
    def list_student_attendance():
        class_id = require_uuid(query_arg("class_id"), "class_id")
        day = require_date(query_arg("date"), "date")
        return success(list(students.get_by_class_and_date(class_id, day)))

    @app.route(f"{prefix}/students/<attendance_id>", methods=["GET"], endpoint="get_student_attendance")
    def get_student_attendance(attendance_id: str):
        return success(students.get(require_uuid(attendance_id, "id")))

    @app.route(f"{prefix}/students/<student_id>/summary", methods=["GET"], endpoint="student_attendance_summary")
    def student_attendance_summary(student_id: str):
        sid = require_uuid(student_id, "student_id")
        semester_id = optional_uuid(query_arg("semester_id"), "semester_id")
        return success(students.get_summary(sid, semester_id))

    @app.route(f"{prefix}/students/<attendance_id>", methods=["PUT"], endpoint="update_student_attendance")
    def update_student_attendance(attendance_id: str):
        aid = require_uuid(attendance_id, "id")
        body = json_body()
        status = attendance_status(body["status"]) if body.get("status") is not None else None
        notes = optional_str(body["notes"], "notes") if "notes" in body else None
        if status is None and notes is None:
            raise ValidationError("Nothing to update", detail="provide status and/or notes")
        return success(students.update(aid, status=status, notes=notes))

    @app.route(f"{prefix}/reports/daily", methods=["GET"], endpoint="daily_attendance_report")
    def daily_attendance_report():
        day = require_date(query_arg("date"), "date")
        return success(students.daily_report(day, request_tenant()))

    @app.route(f"{prefix}/reports/monthly", methods=["GET"], endpoint="monthly_attendance_report")
    def monthly_attendance_report():
        return success(students.monthly_report(_int_arg("year"), _int_arg("month"), request_tenant()))

    @app.route(f"{prefix}/reports/class", methods=["GET"], endpoint="class_attendance_report")
    @app.route(f"{prefix}/reports/class/<class_id>", methods=["GET"], endpoint="class_attendance_report")
    def class_attendance_report(class_id: Optional[str] = None):
        cid = require_uuid(class_id or query_arg("class_id"), "class_id")
        start = require_date(query_arg("start_date"), "start_date")
        end = require_date(query_arg("end_date"), "end_date")
        return success(students.class_report(cid, start, end, request_tenant()))

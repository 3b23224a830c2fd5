from __future__ import annotations

from flask import Flask

from ..common.http import json_body, query_arg, request_tenant, success
from ..common.validators import optional_str, optional_uuid, require_date, require_datetime, require_uuid
from ..core.constants import ATTENDANCE_API_PREFIX
from ..core.exceptions import NotFoundError
from ..container import AttendanceContainer
from ..student_attendance.controller import attendance_status
from .model import CheckIn, TeacherAttendanceFilter


def register(app: Flask, container: AttendanceContainer) -> None:
    prefix = ATTENDANCE_API_PREFIX
    teachers = container.teacher_service

    @app.route(f"{prefix}/teachers/checkin", methods=["POST"], endpoint="teacher_check_in")
    def teacher_check_in():
        body = json_body()
        body_tenant = body.get("tenant_id")
        data = CheckIn(
            teacher_id=require_uuid(body.get("teacher_id"), "teacher_id"),
            semester_id=require_uuid(body.get("semester_id"), "semester_id"),
            attendance_date=require_date(body.get("attendance_date"), "attendance_date"),
            check_in_time=require_datetime(body.get("check_in_time"), "check_in_time"),
            status=attendance_status(body.get("status")),
            notes=optional_str(body.get("notes"), "notes"),
            tenant_id=body_tenant if isinstance(body_tenant, str) and body_tenant.strip() else request_tenant(),
            location_latitude=body.get("location_latitude"),
            location_longitude=body.get("location_longitude"),
        )
        return success(teachers.check_in(data), 201)

    @app.route(f"{prefix}/teachers/checkout", methods=["PUT"], endpoint="teacher_check_out")
    def teacher_check_out():
        body = json_body()
        attendance = teachers.check_out(
            require_uuid(body.get("teacher_id"), "teacher_id"),
            require_date(body.get("date"), "date"),
            require_datetime(body.get("check_out_time"), "check_out_time"),
        )
        return success(attendance)

    @app.route(f"{prefix}/teachers", methods=["GET"], endpoint="teacher_attendance")
    def teacher_attendance():
        day = query_arg("date")
        if day is not None:
            teacher_id = require_uuid(query_arg("teacher_id"), "teacher_id")
            attendance_date = require_date(day, "date")
            attendance = teachers.get_by_teacher_and_date(teacher_id, attendance_date)
            if attendance is None:
                raise NotFoundError(
                    "Attendance record not found",
                    detail=f"teacher {teacher_id} has no record on {attendance_date.isoformat()}",
                )
            return success(attendance)

        start = query_arg("start_date")
        end = query_arg("end_date")
        attendance_filter = TeacherAttendanceFilter(
            teacher_id=optional_uuid(query_arg("teacher_id"), "teacher_id"),
            semester_id=optional_uuid(query_arg("semester_id"), "semester_id"),
            start_date=require_date(start, "start_date") if start else None,
            end_date=require_date(end, "end_date") if end else None,
        )
        return success(list(teachers.list(attendance_filter)))

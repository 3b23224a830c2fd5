from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_uuid, db_cursor, fetchall, fetchone, optional_float
from .model import TeacherAttendance, TeacherAttendanceFilter
from .repository import TeacherAttendanceRepository

_COLUMNS = (
    "id, tenant_id, teacher_id, semester_id, attendance_date, check_in_time, check_out_time, "
    "location_latitude, location_longitude, status, notes, created_at, updated_at"
)


def _to_attendance(r: Dict[str, Any]) -> TeacherAttendance:
    return TeacherAttendance(
        id=as_uuid(r["id"]),
        tenant_id=r["tenant_id"],
        teacher_id=as_uuid(r["teacher_id"]),
        semester_id=as_uuid(r["semester_id"]),
        attendance_date=r["attendance_date"],
        check_in_time=r.get("check_in_time"),
        check_out_time=r.get("check_out_time"),
        location_latitude=optional_float(r.get("location_latitude")),
        location_longitude=optional_float(r.get("location_longitude")),
        status=AttendanceStatus(r["status"]),
        notes=r.get("notes") or "",
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


class MySQLTeacherAttendanceRepository(TeacherAttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, attendance: TeacherAttendance) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO teacher_attendance({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    str(attendance.id),
                    attendance.tenant_id,
                    str(attendance.teacher_id),
                    str(attendance.semester_id),
                    attendance.attendance_date,
                    attendance.check_in_time,
                    attendance.check_out_time,
                    attendance.location_latitude,
                    attendance.location_longitude,
                    attendance.status.value,
                    attendance.notes,
                    attendance.created_at,
                    attendance.updated_at,
                ),
            )

    def update(self, attendance: TeacherAttendance) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE teacher_attendance
                SET check_in_time=%s, check_out_time=%s, status=%s, notes=%s, updated_at=%s
                WHERE id=%s
                """,
                (
                    attendance.check_in_time,
                    attendance.check_out_time,
                    attendance.status.value,
                    attendance.notes,
                    attendance.updated_at,
                    str(attendance.id),
                ),
            )
            return cur.rowcount > 0

    def get_by_id(self, attendance_id: uuid.UUID) -> Optional[TeacherAttendance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM teacher_attendance WHERE id=%s", (str(attendance_id),))
            r = fetchone(cur)
            return _to_attendance(r) if r else None

    def get_by_teacher_and_date(self, teacher_id: uuid.UUID, attendance_date: date) -> Optional[TeacherAttendance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM teacher_attendance WHERE teacher_id=%s AND attendance_date=%s",
                (str(teacher_id), attendance_date),
            )
            r = fetchone(cur)
            return _to_attendance(r) if r else None

    def list(self, attendance_filter: TeacherAttendanceFilter) -> Sequence[TeacherAttendance]:
        where: List[str] = []
        params: List[Any] = []
        if attendance_filter.teacher_id is not None:
            where.append("teacher_id=%s")
            params.append(str(attendance_filter.teacher_id))
        if attendance_filter.semester_id is not None:
            where.append("semester_id=%s")
            params.append(str(attendance_filter.semester_id))
        if attendance_filter.start_date is not None:
            where.append("attendance_date>=%s")
            params.append(attendance_filter.start_date)
        if attendance_filter.end_date is not None:
            where.append("attendance_date<=%s")
            params.append(attendance_filter.end_date)

        sql = f"SELECT {_COLUMNS} FROM teacher_attendance"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY attendance_date DESC, created_at DESC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_attendance(r) for r in fetchall(cur)]

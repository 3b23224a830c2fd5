from __future__ import annotations

import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_uuid, db_cursor, fetchall, fetchone, optional_float
from .model import AttendanceRange, StudentAttendance
from .repository import StudentAttendanceRepository

_COLUMNS = (
    "id, tenant_id, student_id, class_id, semester_id, attendance_date, status, notes, "
    "check_in_latitude, check_in_longitude, created_at, updated_at"
)

_INSERT = f"""
    INSERT INTO student_attendance({_COLUMNS})
    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
"""


def _to_attendance(r: Dict[str, Any]) -> StudentAttendance:
    return StudentAttendance(
        id=as_uuid(r["id"]),
        tenant_id=r["tenant_id"],
        student_id=as_uuid(r["student_id"]),
        class_id=as_uuid(r["class_id"]),
        semester_id=as_uuid(r["semester_id"]),
        attendance_date=r["attendance_date"],
        status=AttendanceStatus(r["status"]),
        notes=r.get("notes") or "",
        check_in_latitude=optional_float(r.get("check_in_latitude")),
        check_in_longitude=optional_float(r.get("check_in_longitude")),
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


def _params(a: StudentAttendance) -> tuple:
    return (
        str(a.id),
        a.tenant_id,
        str(a.student_id),
        str(a.class_id),
        str(a.semester_id),
        a.attendance_date,
        a.status.value,
        a.notes,
        a.check_in_latitude,
        a.check_in_longitude,
        a.created_at,
        a.updated_at,
    )


class MySQLStudentAttendanceRepository(StudentAttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, attendance: StudentAttendance) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_INSERT, _params(attendance))

    def bulk_create(self, attendances: Sequence[StudentAttendance]) -> None:
        if not attendances:
            return
        # One transaction: the cursor context rolls back on the first failure.
        with db_cursor(self._conn_factory) as (_, cur):
            cur.executemany(_INSERT, [_params(a) for a in attendances])

    def get_by_id(self, attendance_id: uuid.UUID) -> Optional[StudentAttendance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM student_attendance WHERE id=%s", (str(attendance_id),))
            r = fetchone(cur)
            return _to_attendance(r) if r else None

    def get_by_class_and_date(self, class_id: uuid.UUID, attendance_date: date) -> Sequence[StudentAttendance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM student_attendance
                WHERE class_id=%s AND attendance_date=%s
                ORDER BY created_at
                """,
                (str(class_id), attendance_date),
            )
            return [_to_attendance(r) for r in fetchall(cur)]

    def update(self, attendance: StudentAttendance) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE student_attendance SET status=%s, notes=%s, updated_at=%s WHERE id=%s",
                (attendance.status.value, attendance.notes, attendance.updated_at, str(attendance.id)),
            )
            return cur.rowcount > 0

    def count_by_status(self, student_id: uuid.UUID, semester_id: Optional[uuid.UUID]) -> Dict[str, int]:
        sql = "SELECT status, COUNT(*) AS total FROM student_attendance WHERE student_id=%s"
        params: List[Any] = [str(student_id)]
        if semester_id is not None:
            sql += " AND semester_id=%s"
            params.append(str(semester_id))
        sql += " GROUP BY status"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return {r["status"]: int(r["total"]) for r in fetchall(cur)}

    def list_by_range(self, attendance_range: AttendanceRange) -> Sequence[StudentAttendance]:
        where = ["attendance_date BETWEEN %s AND %s"]
        params: List[Any] = [attendance_range.start_date, attendance_range.end_date]
        if attendance_range.tenant_id:
            where.append("tenant_id=%s")
            params.append(attendance_range.tenant_id)
        if attendance_range.class_id is not None:
            where.append("class_id=%s")
            params.append(str(attendance_range.class_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM student_attendance
                WHERE {' AND '.join(where)}
                ORDER BY attendance_date, class_id, created_at
                """,
                tuple(params),
            )
            return [_to_attendance(r) for r in fetchall(cur)]

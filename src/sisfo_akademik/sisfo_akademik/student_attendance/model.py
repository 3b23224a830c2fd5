from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional, Sequence

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class StudentAttendance:
    """Domain entity: one attendance mark per student, class and date."""

    id: uuid.UUID
    tenant_id: str
    student_id: uuid.UUID
    class_id: uuid.UUID
    semester_id: uuid.UUID
    attendance_date: date
    status: AttendanceStatus
    notes: str
    created_at: datetime
    updated_at: datetime
    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None


@dataclass(frozen=True)
class NewStudentAttendance:
    student_id: uuid.UUID
    class_id: uuid.UUID
    semester_id: uuid.UUID
    attendance_date: date
    status: AttendanceStatus
    notes: str = ""
    tenant_id: Optional[str] = None
    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None


@dataclass(frozen=True)
class AttendanceRange:
    """Report window, both ends inclusive; ``class_id`` narrows to one class."""

    start_date: date
    end_date: date
    tenant_id: Optional[str] = None
    class_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class AttendanceReport:
    start_date: date
    end_date: date
    tenant_id: Optional[str]
    class_id: Optional[uuid.UUID]
    totals: Dict[str, int]
    records: Sequence[StudentAttendance]

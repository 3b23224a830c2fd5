from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class TeacherAttendance:
    """Per-day presence record; at most one per teacher and date."""

    id: uuid.UUID
    tenant_id: str
    teacher_id: uuid.UUID
    semester_id: uuid.UUID
    attendance_date: date
    status: AttendanceStatus
    notes: str
    created_at: datetime
    updated_at: datetime
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None


@dataclass(frozen=True)
class CheckIn:
    teacher_id: uuid.UUID
    semester_id: uuid.UUID
    attendance_date: date
    check_in_time: datetime
    status: AttendanceStatus
    notes: str = ""
    tenant_id: Optional[str] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None


@dataclass(frozen=True)
class TeacherAttendanceFilter:
    teacher_id: Optional[uuid.UUID] = None
    semester_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

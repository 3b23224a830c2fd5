from __future__ import annotations

import uuid
from datetime import date
from typing import Optional, Protocol, Sequence

from .model import TeacherAttendance, TeacherAttendanceFilter


class TeacherAttendanceRepository(Protocol):
    def create(self, attendance: TeacherAttendance) -> None:
        """Insert; raises ``DuplicateKeyError`` when (teacher, date) exists."""

        raise NotImplementedError

    def update(self, attendance: TeacherAttendance) -> bool:
        raise NotImplementedError

    def get_by_id(self, attendance_id: uuid.UUID) -> Optional[TeacherAttendance]:
        raise NotImplementedError

    def get_by_teacher_and_date(self, teacher_id: uuid.UUID, attendance_date: date) -> Optional[TeacherAttendance]:
        raise NotImplementedError

    def list(self, attendance_filter: TeacherAttendanceFilter) -> Sequence[TeacherAttendance]:
        """Matching rows, latest attendance date first."""

        raise NotImplementedError

from __future__ import annotations

import uuid
from datetime import date
from typing import Dict, Optional, Protocol, Sequence

from .model import AttendanceRange, StudentAttendance


class StudentAttendanceRepository(Protocol):
    def create(self, attendance: StudentAttendance) -> None:
        """Insert; raises ``DuplicateKeyError`` when (student, class, date) exists."""

        raise NotImplementedError

    def bulk_create(self, attendances: Sequence[StudentAttendance]) -> None:
        """Insert every row or none; a duplicate (student, class, date) fails the batch."""

        raise NotImplementedError

    def get_by_id(self, attendance_id: uuid.UUID) -> Optional[StudentAttendance]:
        raise NotImplementedError

    def get_by_class_and_date(self, class_id: uuid.UUID, attendance_date: date) -> Sequence[StudentAttendance]:
        raise NotImplementedError

    def update(self, attendance: StudentAttendance) -> bool:
        """Persist ``status`` and ``notes``; other columns are immutable."""

        raise NotImplementedError

    def count_by_status(self, student_id: uuid.UUID, semester_id: Optional[uuid.UUID]) -> Dict[str, int]:
        raise NotImplementedError

    def list_by_range(self, attendance_range: AttendanceRange) -> Sequence[StudentAttendance]:
        """Rows ordered by date, then class."""

        raise NotImplementedError

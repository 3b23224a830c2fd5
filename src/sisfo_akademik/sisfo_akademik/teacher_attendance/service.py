from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.deadline import Deadline
from ..common.validators import optional_coordinate
from ..core.constants import DEFAULT_OPERATION_TIMEOUT_SECONDS, DEFAULT_TENANT_ID
from ..core.enums import AttendanceStatus
from ..core.exceptions import AlreadyCheckedInError, DuplicateKeyError, NotFoundError, ValidationError
from .model import CheckIn, TeacherAttendance, TeacherAttendanceFilter
from .repository import TeacherAttendanceRepository

logger = logging.getLogger(__name__)


class TeacherAttendanceService:
    def __init__(
        self,
        attendance: TeacherAttendanceRepository,
        *,
        timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        monotonic: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._attendance = attendance
        self._timeout = float(timeout)
        self._clock = clock
        self._monotonic = monotonic
        self._id_factory = id_factory

    def _deadline(self) -> Deadline:
        return Deadline.start(self._timeout, clock=self._monotonic)

    def check_in(self, data: CheckIn) -> TeacherAttendance:
        deadline = self._deadline()
        if data.teacher_id is None:
            raise ValidationError("teacher_id is required")
        if data.semester_id is None:
            raise ValidationError("semester_id is required")
        if data.attendance_date is None:
            raise ValidationError("attendance_date is required")
        if data.check_in_time is None:
            raise ValidationError("check_in_time is required")
        if not isinstance(data.status, AttendanceStatus):
            raise ValidationError("status is required")

        now = self._clock()
        attendance = TeacherAttendance(
            id=self._id_factory(),
            tenant_id=(data.tenant_id or "").strip() or DEFAULT_TENANT_ID,
            teacher_id=data.teacher_id,
            semester_id=data.semester_id,
            attendance_date=data.attendance_date,
            check_in_time=data.check_in_time,
            location_latitude=optional_coordinate(data.location_latitude, "location_latitude", limit=90),
            location_longitude=optional_coordinate(data.location_longitude, "location_longitude", limit=180),
            status=data.status,
            notes=data.notes or "",
            created_at=now,
            updated_at=now,
        )

        deadline.check("load teacher attendance")
        if self._attendance.get_by_teacher_and_date(data.teacher_id, data.attendance_date) is not None:
            raise AlreadyCheckedInError(
                "Already checked in for this date",
                detail=f"teacher {data.teacher_id} on {data.attendance_date.isoformat()}",
            )

        deadline.check("create teacher attendance")
        try:
            self._attendance.create(attendance)
        except DuplicateKeyError as e:
            # Lost a race with a concurrent check-in for the same day.
            raise AlreadyCheckedInError(
                "Already checked in for this date",
                detail=f"teacher {data.teacher_id} on {data.attendance_date.isoformat()}",
            ) from e

        logger.info("teacher %s checked in date=%s", attendance.teacher_id, attendance.attendance_date)
        return attendance

    def check_out(self, teacher_id: uuid.UUID, attendance_date: date, check_out_time: datetime) -> TeacherAttendance:
        """Record the check-out time on the day's record.

        A second check-out overwrites the first.
        """

        deadline = self._deadline()
        deadline.check("load teacher attendance")
        current = self._attendance.get_by_teacher_and_date(teacher_id, attendance_date)
        if current is None:
            raise NotFoundError(
                "Attendance record not found",
                detail=f"teacher {teacher_id} has not checked in on {attendance_date.isoformat()}",
            )
        if current.check_in_time is not None and check_out_time < current.check_in_time:
            raise ValidationError(
                "Check-out time must not be before check-in time",
                detail=f"check_in_time={current.check_in_time.isoformat()} check_out_time={check_out_time.isoformat()}",
            )

        updated = replace(current, check_out_time=check_out_time, updated_at=self._clock())
        deadline.check("update teacher attendance")
        if not self._attendance.update(updated):
            raise NotFoundError("Attendance record not found", detail=f"teacher attendance {current.id} does not exist")

        logger.info("teacher %s checked out date=%s", teacher_id, attendance_date)
        return updated

    def get_by_teacher_and_date(self, teacher_id: uuid.UUID, attendance_date: date) -> Optional[TeacherAttendance]:
        deadline = self._deadline()
        deadline.check("load teacher attendance")
        return self._attendance.get_by_teacher_and_date(teacher_id, attendance_date)

    def list(self, attendance_filter: TeacherAttendanceFilter) -> Sequence[TeacherAttendance]:
        deadline = self._deadline()
        if (
            attendance_filter.start_date is not None
            and attendance_filter.end_date is not None
            and attendance_filter.end_date < attendance_filter.start_date
        ):
            raise ValidationError("end_date must not be before start_date")
        deadline.check("list teacher attendance")
        return self._attendance.list(attendance_filter)

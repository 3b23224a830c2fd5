from __future__ import annotations

import calendar
import logging
import time
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Dict, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..common.deadline import Deadline
from ..common.validators import optional_coordinate
from ..core.constants import DEFAULT_OPERATION_TIMEOUT_SECONDS, DEFAULT_SCHOOL_RADIUS_METERS, DEFAULT_TENANT_ID
from ..core.enums import AttendanceStatus
from ..core.exceptions import AttendanceAlreadyRecordedError, DuplicateKeyError, NotFoundError, ValidationError
from .model import AttendanceRange, AttendanceReport, NewStudentAttendance, StudentAttendance
from .repository import StudentAttendanceRepository
from .school_location import SchoolLocation, SchoolLocationClient, distance_meters

logger = logging.getLogger(__name__)


def tally(statuses: Sequence[AttendanceStatus] | Dict[str, int]) -> Dict[str, int]:
    """Counts for every status label, zero-filled."""

    totals = {s.value: 0 for s in AttendanceStatus}
    if isinstance(statuses, dict):
        for label, count in statuses.items():
            totals[label] = totals.get(label, 0) + int(count)
    else:
        for status in statuses:
            totals[status.value] += 1
    return totals


class StudentAttendanceService:
    def __init__(
        self,
        attendance: StudentAttendanceRepository,
        *,
        school_locations: Optional[SchoolLocationClient] = None,
        timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        monotonic: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._attendance = attendance
        self._school_locations = school_locations
        self._timeout = float(timeout)
        self._clock = clock
        self._monotonic = monotonic
        self._id_factory = id_factory

    def _deadline(self) -> Deadline:
        return Deadline.start(self._timeout, clock=self._monotonic)

    def _build(self, data: NewStudentAttendance, now: datetime) -> StudentAttendance:
        if data.student_id is None:
            raise ValidationError("student_id is required")
        if data.class_id is None:
            raise ValidationError("class_id is required")
        if data.semester_id is None:
            raise ValidationError("semester_id is required")
        if not isinstance(data.status, AttendanceStatus):
            raise ValidationError("status is required")
        if data.attendance_date is None:
            raise ValidationError("attendance_date is required")

        return StudentAttendance(
            id=self._id_factory(),
            tenant_id=(data.tenant_id or "").strip() or DEFAULT_TENANT_ID,
            student_id=data.student_id,
            class_id=data.class_id,
            semester_id=data.semester_id,
            attendance_date=data.attendance_date,
            status=data.status,
            notes=data.notes or "",
            check_in_latitude=optional_coordinate(data.check_in_latitude, "check_in_latitude", limit=90),
            check_in_longitude=optional_coordinate(data.check_in_longitude, "check_in_longitude", limit=180),
            created_at=now,
            updated_at=now,
        )

    def _check_distance(
        self,
        attendance: StudentAttendance,
        deadline: Deadline,
        cache: Dict[str, Optional[SchoolLocation]],
    ) -> None:
        """Reject coordinates outside the tenant school's radius; skipped when the school is unknown."""

        if self._school_locations is None:
            return
        if attendance.check_in_latitude is None or attendance.check_in_longitude is None:
            return
        tenant = attendance.tenant_id
        if tenant not in cache:
            deadline.check("look up school location")
            cache[tenant] = self._school_locations.get_location(tenant)
        location = cache[tenant]
        if location is None:
            return

        radius = location.radius_meters if location.radius_meters > 0 else DEFAULT_SCHOOL_RADIUS_METERS
        distance = distance_meters(
            attendance.check_in_latitude, attendance.check_in_longitude, location.latitude, location.longitude
        )
        if distance > radius:
            raise ValidationError(
                "location too far from school",
                detail=f"check-in is {distance:.0f} m from school, limit {radius:.0f} m",
            )

    def create(self, data: NewStudentAttendance) -> StudentAttendance:
        deadline = self._deadline()
        attendance = self._build(data, self._clock())
        self._check_distance(attendance, deadline, {})

        deadline.check("create student attendance")
        try:
            self._attendance.create(attendance)
        except DuplicateKeyError as e:
            raise AttendanceAlreadyRecordedError(
                "Attendance already recorded",
                detail=(
                    f"student {attendance.student_id} in class {attendance.class_id} "
                    f"on {attendance.attendance_date.isoformat()}"
                ),
            ) from e
        logger.info(
            "student attendance recorded student=%s class=%s date=%s status=%s",
            attendance.student_id, attendance.class_id, attendance.attendance_date, attendance.status.value,
        )
        return attendance

    def bulk_create(self, items: Sequence[NewStudentAttendance]) -> Sequence[StudentAttendance]:
        """Validate every row first, then insert the batch atomically."""

        deadline = self._deadline()
        if not items:
            return []

        now = self._clock()
        rows = []
        seen: Dict[tuple, int] = {}
        locations: Dict[str, Optional[SchoolLocation]] = {}
        for index, data in enumerate(items):
            try:
                row = self._build(data, now)
                self._check_distance(row, deadline, locations)
            except ValidationError as e:
                raise ValidationError(f"Row {index}: {e.message}", detail=f"row {index}: {e.detail}") from e
            key = (row.student_id, row.class_id, row.attendance_date)
            if key in seen:
                raise AttendanceAlreadyRecordedError(
                    f"Row {index}: attendance already recorded",
                    detail=f"row {index} repeats row {seen[key]}",
                )
            seen[key] = index
            rows.append(row)

        deadline.check("bulk create student attendance")
        try:
            self._attendance.bulk_create(rows)
        except DuplicateKeyError as e:
            raise AttendanceAlreadyRecordedError(
                "Attendance already recorded",
                detail="a row repeats an existing student, class and date",
            ) from e
        logger.info("student attendance batch recorded rows=%d", len(rows))
        return rows

    def get(self, attendance_id: uuid.UUID) -> StudentAttendance:
        deadline = self._deadline()
        deadline.check("load student attendance")
        attendance = self._attendance.get_by_id(attendance_id)
        if attendance is None:
            raise NotFoundError("Attendance record not found", detail=f"student attendance {attendance_id} does not exist")
        return attendance

    def get_by_class_and_date(self, class_id: uuid.UUID, attendance_date: date) -> Sequence[StudentAttendance]:
        deadline = self._deadline()
        deadline.check("list student attendance")
        return self._attendance.get_by_class_and_date(class_id, attendance_date)

    def get_summary(self, student_id: uuid.UUID, semester_id: Optional[uuid.UUID] = None) -> Dict[str, int]:
        deadline = self._deadline()
        deadline.check("summarize student attendance")
        return tally(self._attendance.count_by_status(student_id, semester_id))

    def update(
        self,
        attendance_id: uuid.UUID,
        *,
        status: Optional[AttendanceStatus] = None,
        notes: Optional[str] = None,
    ) -> StudentAttendance:
        """Change ``status`` and/or ``notes``; nothing else is editable."""

        deadline = self._deadline()
        current = self.get(attendance_id)
        updated = replace(
            current,
            status=status if status is not None else current.status,
            notes=notes if notes is not None else current.notes,
            updated_at=self._clock(),
        )

        deadline.check("update student attendance")
        if not self._attendance.update(updated):
            raise NotFoundError("Attendance record not found", detail=f"student attendance {attendance_id} does not exist")
        return updated

    def _report(self, attendance_range: AttendanceRange) -> AttendanceReport:
        deadline = self._deadline()
        if attendance_range.end_date < attendance_range.start_date:
            raise ValidationError("end_date must not be before start_date")

        deadline.check("load attendance report")
        records = self._attendance.list_by_range(attendance_range)
        return AttendanceReport(
            start_date=attendance_range.start_date,
            end_date=attendance_range.end_date,
            tenant_id=attendance_range.tenant_id,
            class_id=attendance_range.class_id,
            totals=tally([r.status for r in records]),
            records=records,
        )

    def daily_report(self, day: date, tenant_id: Optional[str] = None) -> AttendanceReport:
        return self._report(AttendanceRange(start_date=day, end_date=day, tenant_id=tenant_id))

    def monthly_report(self, year: int, month: int, tenant_id: Optional[str] = None) -> AttendanceReport:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        if not 1 <= year <= 9999:
            raise ValidationError("year is out of range")
        last_day = calendar.monthrange(year, month)[1]
        return self._report(
            AttendanceRange(start_date=date(year, month, 1), end_date=date(year, month, last_day), tenant_id=tenant_id)
        )

    def class_report(
        self,
        class_id: uuid.UUID,
        start_date: date,
        end_date: date,
        tenant_id: Optional[str] = None,
    ) -> AttendanceReport:
        return self._report(
            AttendanceRange(start_date=start_date, end_date=end_date, tenant_id=tenant_id, class_id=class_id)
        )

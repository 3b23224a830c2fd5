from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from types import SimpleNamespace
from typing import Optional

import pytest

from src.sisfo_akademik.sisfo_akademik.admission_periods.model import AdmissionPeriod
from src.sisfo_akademik.sisfo_akademik.admission_periods.service import AdmissionPeriodService
from src.sisfo_akademik.sisfo_akademik.applications.model import Application, ApplicationFilter
from src.sisfo_akademik.sisfo_akademik.applications.registration_number import RegistrationNumberGenerator
from src.sisfo_akademik.sisfo_akademik.applications.service import ApplicationService
from src.sisfo_akademik.sisfo_akademik.container import AdmissionContainer, AttendanceContainer
from src.sisfo_akademik.sisfo_akademik.core.enums import OutboxStatus
from src.sisfo_akademik.sisfo_akademik.core.exceptions import (
    DuplicateKeyError,
    PersistenceError,
    PublishError,
    StaleWriteError,
)
from src.sisfo_akademik.sisfo_akademik.documents.model import ApplicationDocument
from src.sisfo_akademik.sisfo_akademik.documents.service import DocumentService
from src.sisfo_akademik.sisfo_akademik.documents.storage import LocalFileStorage
from src.sisfo_akademik.sisfo_akademik.events.model import OutboxEvent
from src.sisfo_akademik.sisfo_akademik.events.outbox import OutboxRelay
from src.sisfo_akademik.sisfo_akademik.main import create_admission_app, create_attendance_app
from src.sisfo_akademik.sisfo_akademik.student_attendance.model import AttendanceRange, StudentAttendance
from src.sisfo_akademik.sisfo_akademik.student_attendance.service import StudentAttendanceService
from src.sisfo_akademik.sisfo_akademik.teacher_attendance.model import TeacherAttendance, TeacherAttendanceFilter
from src.sisfo_akademik.sisfo_akademik.teacher_attendance.service import TeacherAttendanceService


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 9, 0, 0)


class InMemoryPeriods:
    def __init__(self):
        self.items: dict[uuid.UUID, AdmissionPeriod] = {}

    def _deactivate_others(self, period_id):
        for pid, p in list(self.items.items()):
            if pid != period_id and p.is_active:
                self.items[pid] = replace(p, is_active=False)

    def create(self, period):
        if period.is_active:
            self._deactivate_others(period.id)
        self.items[period.id] = period

    def get_by_id(self, period_id):
        return self.items.get(period_id)

    def get_active(self):
        active = [p for p in self.items.values() if p.is_active]
        return active[0] if active else None

    def list(self):
        return sorted(self.items.values(), key=lambda p: p.start_date, reverse=True)

    def update(self, period):
        if period.id not in self.items:
            return False
        if period.is_active:
            self._deactivate_others(period.id)
        self.items[period.id] = period
        return True

    def delete(self, period_id):
        return self.items.pop(period_id, None) is not None


class InMemoryOutbox:
    def __init__(self):
        self.items: dict[uuid.UUID, OutboxEvent] = {}

    def add(self, event):
        self.items[event.id] = event

    def get_by_id(self, event_id):
        return self.items.get(event_id)

    def list_pending(self, limit):
        pending = [e for e in self.items.values() if e.status is OutboxStatus.PENDING]
        pending.sort(key=lambda e: e.created_at)
        return pending[:limit]

    def mark_published(self, event_id, published_at):
        event = self.items.get(event_id)
        if event is None:
            return False
        self.items[event_id] = replace(event, status=OutboxStatus.PUBLISHED, published_at=published_at)
        return True

    def record_failure(self, event_id, error):
        event = self.items.get(event_id)
        if event is None:
            return False
        self.items[event_id] = replace(event, attempts=event.attempts + 1, last_error=error)
        return True


class InMemoryApplications:
    """Honours the version compare-and-set and the registration-number unique key."""

    def __init__(self, outbox: Optional[InMemoryOutbox] = None):
        self.items: dict[uuid.UUID, Application] = {}
        self.outbox = outbox if outbox is not None else InMemoryOutbox()
        self.writes = 0
        self.fail_updates_after: Optional[int] = None

    def create(self, application):
        if any(a.registration_number == application.registration_number for a in self.items.values()):
            raise DuplicateKeyError("Duplicate entry", detail=application.registration_number)
        self.items[application.id] = application

    def get_by_id(self, application_id):
        return self.items.get(application_id)

    def get_by_registration_number(self, registration_number):
        for a in self.items.values():
            if a.registration_number == registration_number:
                return a
        return None

    def list(self, application_filter=ApplicationFilter()):
        out = list(self.items.values())
        if application_filter.admission_period_id is not None:
            out = [a for a in out if a.admission_period_id == application_filter.admission_period_id]
        if application_filter.status is not None:
            out = [a for a in out if a.status == application_filter.status]
        if application_filter.tenant_id is not None:
            out = [a for a in out if a.tenant_id == application_filter.tenant_id]
        return sorted(out, key=lambda a: a.created_at, reverse=True)

    def _compare_and_set(self, application):
        if self.fail_updates_after is not None and self.writes >= self.fail_updates_after:
            raise StaleWriteError("Application was modified concurrently", detail=str(application.id))
        current = self.items.get(application.id)
        if current is None or current.version != application.version:
            raise StaleWriteError("Application was modified concurrently", detail=str(application.id))
        stored = replace(application, version=application.version + 1)
        self.items[application.id] = stored
        self.writes += 1
        return stored

    def update(self, application):
        return self._compare_and_set(application)

    def mark_registered(self, application, event, *, publish=None):
        previous = self.items.get(application.id)
        stored = self._compare_and_set(application)
        if publish is not None:
            try:
                event = publish(event)
            except Exception:
                self.items[application.id] = previous
                self.writes -= 1
                raise
        self.outbox.add(event)
        return stored

    def delete(self, application_id):
        return self.items.pop(application_id, None) is not None


class RecordingPublisher:
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.published: list[tuple[str, str, dict]] = []

    def publish(self, exchange, routing_key, payload):
        if self.fail:
            raise PublishError("Failed to publish event", detail="broker rejected the message")
        self.published.append((exchange, routing_key, payload))


class InMemoryDocuments:
    def __init__(self):
        self.items: dict[uuid.UUID, ApplicationDocument] = {}
        self.fail_create = False

    def create(self, document):
        if self.fail_create:
            raise PersistenceError("Database error", detail="insert failed")
        self.items[document.id] = document

    def get_by_id(self, document_id):
        d = self.items.get(document_id)
        return d if d is not None and d.deleted_at is None else None

    def list_by_application(self, application_id):
        return [d for d in self.items.values() if d.application_id == application_id and d.deleted_at is None]

    def soft_delete(self, document_id, deleted_at):
        d = self.items.get(document_id)
        if d is None or d.deleted_at is not None:
            return False
        self.items[document_id] = replace(d, deleted_at=deleted_at, updated_at=deleted_at)
        return True


class InMemoryStudentAttendance:
    def __init__(self):
        self.items: dict[uuid.UUID, StudentAttendance] = {}
        self.fail_bulk = False

    @staticmethod
    def _key(a):
        return (a.student_id, a.class_id, a.attendance_date)

    def create(self, attendance):
        if any(self._key(a) == self._key(attendance) for a in self.items.values()):
            raise DuplicateKeyError("Duplicate entry", detail="student/class/date")
        self.items[attendance.id] = attendance

    def bulk_create(self, attendances):
        if self.fail_bulk:
            raise PersistenceError("Database error", detail="batch insert failed")
        taken = {self._key(a) for a in self.items.values()}
        for a in attendances:
            if self._key(a) in taken:
                raise DuplicateKeyError("Duplicate entry", detail="student/class/date")
            taken.add(self._key(a))
        for a in attendances:
            self.items[a.id] = a

    def get_by_id(self, attendance_id):
        return self.items.get(attendance_id)

    def get_by_class_and_date(self, class_id, attendance_date):
        return [a for a in self.items.values() if a.class_id == class_id and a.attendance_date == attendance_date]

    def update(self, attendance):
        current = self.items.get(attendance.id)
        if current is None:
            return False
        self.items[attendance.id] = replace(
            current, status=attendance.status, notes=attendance.notes, updated_at=attendance.updated_at
        )
        return True

    def count_by_status(self, student_id, semester_id):
        counts: dict[str, int] = {}
        for a in self.items.values():
            if a.student_id != student_id:
                continue
            if semester_id is not None and a.semester_id != semester_id:
                continue
            counts[a.status.value] = counts.get(a.status.value, 0) + 1
        return counts

    def list_by_range(self, attendance_range: AttendanceRange):
        out = [
            a
            for a in self.items.values()
            if attendance_range.start_date <= a.attendance_date <= attendance_range.end_date
            and (not attendance_range.tenant_id or a.tenant_id == attendance_range.tenant_id)
            and (attendance_range.class_id is None or a.class_id == attendance_range.class_id)
        ]
        return sorted(out, key=lambda a: (a.attendance_date, str(a.class_id)))


class InMemoryTeacherAttendance:
    def __init__(self):
        self.items: dict[uuid.UUID, TeacherAttendance] = {}

    def create(self, attendance):
        for a in self.items.values():
            if a.teacher_id == attendance.teacher_id and a.attendance_date == attendance.attendance_date:
                raise DuplicateKeyError("Duplicate entry", detail="teacher/date")
        self.items[attendance.id] = attendance

    def update(self, attendance):
        if attendance.id not in self.items:
            return False
        self.items[attendance.id] = attendance
        return True

    def get_by_id(self, attendance_id):
        return self.items.get(attendance_id)

    def get_by_teacher_and_date(self, teacher_id, attendance_date: date):
        for a in self.items.values():
            if a.teacher_id == teacher_id and a.attendance_date == attendance_date:
                return a
        return None

    def list(self, attendance_filter: TeacherAttendanceFilter):
        out = list(self.items.values())
        if attendance_filter.teacher_id is not None:
            out = [a for a in out if a.teacher_id == attendance_filter.teacher_id]
        if attendance_filter.semester_id is not None:
            out = [a for a in out if a.semester_id == attendance_filter.semester_id]
        if attendance_filter.start_date is not None:
            out = [a for a in out if a.attendance_date >= attendance_filter.start_date]
        if attendance_filter.end_date is not None:
            out = [a for a in out if a.attendance_date <= attendance_filter.end_date]
        return sorted(out, key=lambda a: a.attendance_date, reverse=True)


class SequenceRandom:
    """randbelow replacement returning scripted values, then repeating the last."""

    def __init__(self, *values: int):
        self.values = list(values)
        self.calls = 0

    def __call__(self, upper: int) -> int:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value % upper


class ManualMonotonic:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class AdmissionWorld:
    periods: InMemoryPeriods
    applications: InMemoryApplications
    outbox: InMemoryOutbox
    documents: InMemoryDocuments
    publisher: Optional[RecordingPublisher]
    relay: OutboxRelay
    random: SequenceRandom
    monotonic: ManualMonotonic
    storage: LocalFileStorage
    period_service: AdmissionPeriodService
    application_service: ApplicationService
    document_service: DocumentService


def build_admission_world(now: datetime, upload_dir, *, publisher: Optional[RecordingPublisher]) -> AdmissionWorld:
    periods = InMemoryPeriods()
    outbox = InMemoryOutbox()
    applications = InMemoryApplications(outbox)
    documents = InMemoryDocuments()
    rnd = SequenceRandom(1234, 5678, 9012, 3456, 7890, 1111)
    monotonic = ManualMonotonic()
    clock = lambda: now
    storage = LocalFileStorage(upload_dir)
    relay = OutboxRelay(outbox, publisher, clock=clock)

    return AdmissionWorld(
        periods=periods,
        applications=applications,
        outbox=outbox,
        documents=documents,
        publisher=publisher,
        relay=relay,
        random=rnd,
        monotonic=monotonic,
        storage=storage,
        period_service=AdmissionPeriodService(periods, applications, clock=clock, monotonic=monotonic),
        application_service=ApplicationService(
            applications,
            periods,
            relay,
            registration_numbers=RegistrationNumberGenerator(randbelow=rnd),
            clock=clock,
            monotonic=monotonic,
        ),
        document_service=DocumentService(documents, applications, storage, clock=clock, monotonic=monotonic),
    )


@pytest.fixture
def admission(fixed_now, tmp_path) -> AdmissionWorld:
    return build_admission_world(fixed_now, tmp_path / "uploads", publisher=RecordingPublisher())


@pytest.fixture
def offline_admission(fixed_now, tmp_path) -> AdmissionWorld:
    """No event bus configured."""
    return build_admission_world(fixed_now, tmp_path / "uploads", publisher=None)


@pytest.fixture
def failing_admission(fixed_now, tmp_path) -> AdmissionWorld:
    return build_admission_world(fixed_now, tmp_path / "uploads", publisher=RecordingPublisher(fail=True))


@dataclass
class AttendanceWorld:
    students_repo: InMemoryStudentAttendance
    teachers_repo: InMemoryTeacherAttendance
    monotonic: ManualMonotonic
    student_service: StudentAttendanceService
    teacher_service: TeacherAttendanceService


@pytest.fixture
def attendance(fixed_now) -> AttendanceWorld:
    students_repo = InMemoryStudentAttendance()
    teachers_repo = InMemoryTeacherAttendance()
    monotonic = ManualMonotonic()
    clock = lambda: fixed_now
    return AttendanceWorld(
        students_repo=students_repo,
        teachers_repo=teachers_repo,
        monotonic=monotonic,
        student_service=StudentAttendanceService(students_repo, clock=clock, monotonic=monotonic),
        teacher_service=TeacherAttendanceService(teachers_repo, clock=clock, monotonic=monotonic),
    )


@pytest.fixture
def outbox() -> InMemoryOutbox:
    return InMemoryOutbox()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def broken_publisher() -> RecordingPublisher:
    return RecordingPublisher(fail=True)


TEST_SETTINGS = SimpleNamespace(LOG_LEVEL="WARNING", LOG_JSON=False, DEBUG=False, TESTING=True, AUTO_INIT_DB=False)


@pytest.fixture
def admission_client(admission):
    container = AdmissionContainer(
        conn=None,
        period_service=admission.period_service,
        application_service=admission.application_service,
        document_service=admission.document_service,
        relay=admission.relay,
    )
    return create_admission_app(container=container, settings=TEST_SETTINGS).test_client()


@pytest.fixture
def attendance_client(attendance):
    container = AttendanceContainer(
        conn=None,
        student_service=attendance.student_service,
        teacher_service=attendance.teacher_service,
    )
    return create_attendance_app(container=container, settings=TEST_SETTINGS).test_client()

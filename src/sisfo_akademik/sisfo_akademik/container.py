from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .admission_periods.mysql_admission_period_repository import MySQLAdmissionPeriodRepository
from .admission_periods.service import AdmissionPeriodService
from .applications.mysql_application_repository import MySQLApplicationRepository
from .applications.service import ApplicationService
from .core.constants import DEFAULT_OPERATION_TIMEOUT_SECONDS, DEFAULT_UPLOAD_DIR
from .database.connection import DatabaseConnection, db_config_from_mapping
from .documents.mysql_document_repository import MySQLDocumentRepository
from .documents.service import DocumentService
from .documents.storage import LocalFileStorage
from .events.mysql_outbox_repository import MySQLOutboxRepository
from .events.outbox import OutboxRelay
from .events.publisher import KombuEventPublisher, connect_publisher
from .student_attendance.mysql_student_attendance_repository import MySQLStudentAttendanceRepository
from .student_attendance.school_location import HttpSchoolLocationClient
from .student_attendance.service import StudentAttendanceService
from .teacher_attendance.mysql_teacher_attendance_repository import MySQLTeacherAttendanceRepository
from .teacher_attendance.service import TeacherAttendanceService


@dataclass(frozen=True)
class AdmissionContainer:
    conn: Optional[DatabaseConnection]

    period_service: AdmissionPeriodService
    application_service: ApplicationService
    document_service: DocumentService
    relay: OutboxRelay

    publisher: Optional[KombuEventPublisher] = None


@dataclass(frozen=True)
class AttendanceContainer:
    conn: Optional[DatabaseConnection]

    student_service: StudentAttendanceService
    teacher_service: TeacherAttendanceService


def build_relay(
    conn: DatabaseConnection,
    *,
    rabbitmq_url: str = "",
    timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
) -> tuple[OutboxRelay, Optional[KombuEventPublisher]]:
    publisher = connect_publisher(rabbitmq_url, timeout=timeout)
    return OutboxRelay(MySQLOutboxRepository(conn), publisher), publisher


def build_admission_container(
    *,
    db_config: dict,
    rabbitmq_url: str = "",
    upload_dir: str = DEFAULT_UPLOAD_DIR,
    timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
) -> AdmissionContainer:
    conn = DatabaseConnection.get_instance(db_config_from_mapping(db_config, timeout_seconds=timeout))

    periods_repo = MySQLAdmissionPeriodRepository(conn)
    applications_repo = MySQLApplicationRepository(conn)
    documents_repo = MySQLDocumentRepository(conn)
    relay, publisher = build_relay(conn, rabbitmq_url=rabbitmq_url, timeout=timeout)

    period_service = AdmissionPeriodService(periods_repo, applications_repo, timeout=timeout)
    application_service = ApplicationService(applications_repo, periods_repo, relay, timeout=timeout)
    document_service = DocumentService(
        documents_repo,
        applications_repo,
        LocalFileStorage(upload_dir),
        timeout=timeout,
    )

    return AdmissionContainer(
        conn=conn,
        period_service=period_service,
        application_service=application_service,
        document_service=document_service,
        relay=relay,
        publisher=publisher,
    )


def build_attendance_container(
    *,
    db_config: dict,
    academic_service_url: str = "",
    timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
) -> AttendanceContainer:
    conn = DatabaseConnection.get_instance(db_config_from_mapping(db_config, timeout_seconds=timeout))
    # Without the academic service URL the check-in geofence is off.
    school_locations = HttpSchoolLocationClient(academic_service_url, timeout=timeout) if academic_service_url else None

    return AttendanceContainer(
        conn=conn,
        student_service=StudentAttendanceService(
            MySQLStudentAttendanceRepository(conn),
            school_locations=school_locations,
            timeout=timeout,
        ),
        teacher_service=TeacherAttendanceService(MySQLTeacherAttendanceRepository(conn), timeout=timeout),
    )

from __future__ import annotations

import json
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Sequence

from ..core.enums import ApplicationStatus
from ..core.exceptions import StaleWriteError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_uuid, db_cursor, fetchall, fetchone, optional_float
from ..events.model import OutboxEvent
from .model import Application, ApplicationFilter
from .repository import ApplicationRepository

_COLUMNS = """
    id, tenant_id, admission_period_id, registration_number, first_name, last_name,
    email, phone_number, status, previous_school, average_score,
    test_score, interview_score, final_score, submission_date, version, created_at, updated_at
"""


def _to_application(r: Dict[str, Any]) -> Application:
    return Application(
        id=as_uuid(r["id"]),
        tenant_id=r["tenant_id"],
        admission_period_id=as_uuid(r["admission_period_id"]),
        registration_number=r["registration_number"],
        first_name=r["first_name"],
        last_name=r.get("last_name") or "",
        email=r["email"],
        phone_number=r.get("phone_number") or "",
        status=ApplicationStatus(r["status"]),
        previous_school=r.get("previous_school") or "",
        average_score=float(r["average_score"]),
        test_score=optional_float(r.get("test_score")),
        interview_score=optional_float(r.get("interview_score")),
        final_score=optional_float(r.get("final_score")),
        submission_date=r.get("submission_date"),
        version=int(r["version"]),
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


class MySQLApplicationRepository(ApplicationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, application: Application) -> None:
        a = application
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO applications({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    str(a.id), a.tenant_id, str(a.admission_period_id), a.registration_number,
                    a.first_name, a.last_name, a.email, a.phone_number, a.status.value,
                    a.previous_school, a.average_score, a.test_score, a.interview_score,
                    a.final_score, a.submission_date, a.version, a.created_at, a.updated_at,
                ),
            )

    def get_by_id(self, application_id: uuid.UUID) -> Optional[Application]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM applications WHERE id=%s", (str(application_id),))
            r = fetchone(cur)
            return _to_application(r) if r else None

    def get_by_registration_number(self, registration_number: str) -> Optional[Application]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM applications WHERE registration_number=%s",
                (registration_number,),
            )
            r = fetchone(cur)
            return _to_application(r) if r else None

    def list(self, application_filter: ApplicationFilter) -> Sequence[Application]:
        clauses: list[str] = []
        params: list[object] = []

        if application_filter.admission_period_id is not None:
            clauses.append("admission_period_id=%s")
            params.append(str(application_filter.admission_period_id))
        if application_filter.status is not None:
            clauses.append("status=%s")
            params.append(application_filter.status.value)
        if application_filter.tenant_id is not None:
            clauses.append("tenant_id=%s")
            params.append(application_filter.tenant_id)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM applications {where} ORDER BY created_at DESC",
                tuple(params),
            )
            return [_to_application(r) for r in fetchall(cur)]

    @staticmethod
    def _compare_and_set(cur, a: Application) -> None:
        cur.execute(
            """
            UPDATE applications
            SET admission_period_id=%s, first_name=%s, last_name=%s, email=%s, phone_number=%s,
                status=%s, previous_school=%s, average_score=%s, test_score=%s, interview_score=%s,
                final_score=%s, submission_date=%s, updated_at=%s, version=version+1
            WHERE id=%s AND version=%s
            """,
            (
                str(a.admission_period_id), a.first_name, a.last_name, a.email, a.phone_number,
                a.status.value, a.previous_school, a.average_score, a.test_score, a.interview_score,
                a.final_score, a.submission_date, a.updated_at, str(a.id), a.version,
            ),
        )
        if cur.rowcount == 0:
            raise StaleWriteError(
                "Application was modified concurrently",
                detail=f"application {a.id} is no longer at version {a.version}",
            )

    def update(self, application: Application) -> Application:
        with db_cursor(self._conn_factory) as (_, cur):
            self._compare_and_set(cur, application)
        return replace(application, version=application.version + 1)

    def mark_registered(
        self,
        application: Application,
        event: OutboxEvent,
        *,
        publish: Optional[Callable[[OutboxEvent], OutboxEvent]] = None,
    ) -> Application:
        with db_cursor(self._conn_factory) as (_, cur):
            # The version UPDATE holds the row lock, so a racing register waits here.
            self._compare_and_set(cur, application)
            if publish is not None:
                event = publish(event)
            cur.execute(
                """
                INSERT INTO outbox_events(id, exchange, routing_key, payload, status, attempts, created_at, published_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    str(event.id), event.exchange, event.routing_key, json.dumps(event.payload),
                    event.status.value, event.attempts, event.created_at, event.published_at,
                ),
            )
        return replace(application, version=application.version + 1)

    def delete(self, application_id: uuid.UUID) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM applications WHERE id=%s", (str(application_id),))
            return cur.rowcount > 0

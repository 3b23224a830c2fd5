from __future__ import annotations

import uuid
from typing import Any, Dict, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_uuid, db_cursor, fetchall, fetchone
from .model import AdmissionPeriod
from .repository import AdmissionPeriodRepository

_COLUMNS = "id, name, start_date, end_date, is_active, is_announced, created_at, updated_at"


def _to_period(r: Dict[str, Any]) -> AdmissionPeriod:
    return AdmissionPeriod(
        id=as_uuid(r["id"]),
        name=r["name"],
        start_date=r["start_date"],
        end_date=r["end_date"],
        is_active=bool(r["is_active"]),
        is_announced=bool(r["is_announced"]),
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


class MySQLAdmissionPeriodRepository(AdmissionPeriodRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _deactivate_others(cur, period_id: uuid.UUID) -> None:
        cur.execute(
            "UPDATE admission_periods SET is_active=0 WHERE is_active=1 AND id<>%s",
            (str(period_id),),
        )

    def create(self, period: AdmissionPeriod) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            if period.is_active:
                self._deactivate_others(cur, period.id)
            cur.execute(
                f"""
                INSERT INTO admission_periods({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    str(period.id),
                    period.name,
                    period.start_date,
                    period.end_date,
                    int(period.is_active),
                    int(period.is_announced),
                    period.created_at,
                    period.updated_at,
                ),
            )

    def get_by_id(self, period_id: uuid.UUID) -> Optional[AdmissionPeriod]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM admission_periods WHERE id=%s", (str(period_id),))
            r = fetchone(cur)
            return _to_period(r) if r else None

    def get_active(self) -> Optional[AdmissionPeriod]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM admission_periods
                WHERE is_active=1
                ORDER BY start_date DESC
                LIMIT 1
                """
            )
            r = fetchone(cur)
            return _to_period(r) if r else None

    def list(self) -> Sequence[AdmissionPeriod]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM admission_periods ORDER BY start_date DESC")
            return [_to_period(r) for r in fetchall(cur)]

    def update(self, period: AdmissionPeriod) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            if period.is_active:
                self._deactivate_others(cur, period.id)
            cur.execute(
                """
                UPDATE admission_periods
                SET name=%s, start_date=%s, end_date=%s, is_active=%s, is_announced=%s, updated_at=%s
                WHERE id=%s
                """,
                (
                    period.name,
                    period.start_date,
                    period.end_date,
                    int(period.is_active),
                    int(period.is_announced),
                    period.updated_at,
                    str(period.id),
                ),
            )
            return cur.rowcount > 0

    def delete(self, period_id: uuid.UUID) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM admission_periods WHERE id=%s", (str(period_id),))
            return cur.rowcount > 0

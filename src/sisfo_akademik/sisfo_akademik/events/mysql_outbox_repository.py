from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..core.enums import OutboxStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_uuid, db_cursor, fetchall, fetchone
from .model import OutboxEvent
from .repository import OutboxRepository

_COLUMNS = "id, exchange, routing_key, payload, status, attempts, last_error, created_at, published_at"


def _to_event(r: Dict[str, Any]) -> OutboxEvent:
    payload = r["payload"]
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8")
    if isinstance(payload, str):
        payload = json.loads(payload)
    return OutboxEvent(
        id=as_uuid(r["id"]),
        exchange=r["exchange"],
        routing_key=r["routing_key"],
        payload=payload,
        status=OutboxStatus(r["status"]),
        attempts=int(r["attempts"]),
        last_error=r.get("last_error"),
        created_at=r["created_at"],
        published_at=r.get("published_at"),
    )


class MySQLOutboxRepository(OutboxRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, event_id: uuid.UUID) -> Optional[OutboxEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM outbox_events WHERE id=%s", (str(event_id),))
            r = fetchone(cur)
            return _to_event(r) if r else None

    def list_pending(self, limit: int) -> Sequence[OutboxEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM outbox_events
                WHERE status=%s
                ORDER BY created_at ASC
                LIMIT %s
                """,
                (OutboxStatus.PENDING.value, int(limit)),
            )
            return [_to_event(r) for r in fetchall(cur)]

    def mark_published(self, event_id: uuid.UUID, published_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE outbox_events
                SET status=%s, published_at=%s, attempts=attempts+1, last_error=NULL
                WHERE id=%s AND status=%s
                """,
                (OutboxStatus.PUBLISHED.value, published_at, str(event_id), OutboxStatus.PENDING.value),
            )
            return cur.rowcount > 0

    def record_failure(self, event_id: uuid.UUID, error: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE outbox_events SET attempts=attempts+1, last_error=%s WHERE id=%s",
                (error[:2000], str(event_id)),
            )
            return cur.rowcount > 0

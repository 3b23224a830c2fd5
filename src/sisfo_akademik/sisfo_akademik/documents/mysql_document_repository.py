from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_uuid, db_cursor, fetchall, fetchone
from .model import ApplicationDocument
from .repository import DocumentRepository

_COLUMNS = (
    "id, application_id, document_type, file_url, file_name, file_size, "
    "uploaded_at, created_at, updated_at, deleted_at"
)


def _to_document(r: Dict[str, Any]) -> ApplicationDocument:
    return ApplicationDocument(
        id=as_uuid(r["id"]),
        application_id=as_uuid(r["application_id"]),
        document_type=r["document_type"],
        file_url=r["file_url"],
        file_name=r["file_name"],
        file_size=int(r["file_size"]),
        uploaded_at=r["uploaded_at"],
        created_at=r["created_at"],
        updated_at=r["updated_at"],
        deleted_at=r.get("deleted_at"),
    )


class MySQLDocumentRepository(DocumentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def create(self, document: ApplicationDocument) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO application_documents({_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    str(document.id),
                    str(document.application_id),
                    document.document_type,
                    document.file_url,
                    document.file_name,
                    document.file_size,
                    document.uploaded_at,
                    document.created_at,
                    document.updated_at,
                    document.deleted_at,
                ),
            )

    def get_by_id(self, document_id: uuid.UUID) -> Optional[ApplicationDocument]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM application_documents WHERE id=%s AND deleted_at IS NULL",
                (str(document_id),),
            )
            r = fetchone(cur)
            return _to_document(r) if r else None

    def list_by_application(self, application_id: uuid.UUID) -> Sequence[ApplicationDocument]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM application_documents
                WHERE application_id=%s AND deleted_at IS NULL
                ORDER BY uploaded_at DESC
                """,
                (str(application_id),),
            )
            return [_to_document(r) for r in fetchall(cur)]

    def soft_delete(self, document_id: uuid.UUID, deleted_at: datetime) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE application_documents
                SET deleted_at=%s, updated_at=%s
                WHERE id=%s AND deleted_at IS NULL
                """,
                (deleted_at, deleted_at, str(document_id)),
            )
            return cur.rowcount > 0

from __future__ import annotations

import uuid
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import DuplicateKeyError, PersistenceError, ReferencedRowError
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """One transaction per block: commit on success, rollback on any error.

    mysql-connector errors surface as ``PersistenceError``
    (``DuplicateKeyError`` for unique-key violations,
    ``ReferencedRowError`` when a foreign key blocks a delete).
    """

    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as e:
        raise PersistenceError("Database unavailable", detail=str(e)) from e
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.IntegrityError as e:
        conn.rollback()
        if e.errno == errorcode.ER_DUP_ENTRY:
            raise DuplicateKeyError("Duplicate entry", detail=str(e)) from e
        if e.errno == errorcode.ER_ROW_IS_REFERENCED_2:
            raise ReferencedRowError("Row is still referenced", detail=str(e)) from e
        raise PersistenceError("Database constraint violated", detail=str(e)) from e
    except mysql.connector.Error as e:
        conn.rollback()
        raise PersistenceError("Database error", detail=str(e)) from e
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def as_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("ascii")
    return uuid.UUID(str(value))


def optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)

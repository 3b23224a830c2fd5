"""Schema bootstrap for ``database/schema.sql``.

Every statement in the file is ``CREATE ... IF NOT EXISTS``, so applying it on
each start is safe. ``CREATE DATABASE``/``USE`` lines are dropped; the target
database always comes from settings.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, List, Union

import mysql.connector

from .connection import DBConfig, db_config_from_mapping

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[4] / "database" / "schema.sql"

_DATABASE_LINE = re.compile(r"(?im)^\s*(CREATE\s+DATABASE|USE)\b[^;]*;\s*$")


def _open(config: DBConfig, *, select_database: bool = True):
    options = {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "connection_timeout": max(1, int(round(config.timeout_seconds))),
        "use_pure": True,
    }
    if select_database:
        options["database"] = config.database
    return mysql.connector.connect(**options)


def split_statements(sql: str) -> Iterator[str]:
    """Split on top-level ``;``; quoted semicolons and ``--`` comment lines are ignored."""

    body = "\n".join(line for line in sql.splitlines() if not line.lstrip().startswith("--"))
    start = 0
    quote = ""
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and quote:
            i += 2
            continue
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            stmt = body[start:i].strip()
            if stmt:
                yield stmt
            start = i + 1
        i += 1
    tail = body[start:].strip()
    if tail:
        yield tail


def schema_statements(schema_path: Union[str, Path] = SCHEMA_PATH) -> List[str]:
    sql = Path(schema_path).read_text(encoding="utf-8")
    return list(split_statements(_DATABASE_LINE.sub("", sql)))


def ensure_database(config: DBConfig) -> None:
    conn = _open(config, select_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{config.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: Union[str, Path] = SCHEMA_PATH) -> int:
    """Create the database if needed and run every schema statement; returns the count."""

    config = db_config_from_mapping(db_config)
    statements = schema_statements(schema_path)
    ensure_database(config)

    conn = _open(config)
    try:
        cur = conn.cursor()
        for stmt in statements:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("schema applied statements=%d path=%s", len(statements), schema_path)
    return len(statements)


def list_tables(db_config: dict) -> List[str]:
    conn = _open(db_config_from_mapping(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return sorted(row[0] for row in cur.fetchall())
    finally:
        conn.close()

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import mysql.connector

logger = logging.getLogger(__name__)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    timeout_seconds: float = 5.0


def db_config_from_mapping(db_config: dict, *, timeout_seconds: float = 5.0) -> DBConfig:
    return DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        timeout_seconds=float(timeout_seconds),
    )


class DatabaseConnection:
    """DB connection factory.

    Note: We create short-lived connections per operation; the connect and
    socket timeouts bound every blocking call by the operation deadline.
    """

    _instances: dict[tuple, "DatabaseConnection"] = {}

    def __init__(self, config: DBConfig):
        self._config = config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        key = (config.host, config.port, config.user, config.database)
        if key not in cls._instances:
            cls._instances[key] = DatabaseConnection(config)
        return cls._instances[key]

    @property
    def config(self) -> DBConfig:
        return self._config

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            connection_timeout=max(1, int(round(self._config.timeout_seconds))),
            use_pure=True,
            time_zone="+00:00",
        )

    def ping(self) -> bool:
        conn: Optional[object] = None
        try:
            conn = self.connect()
            conn.ping(reconnect=False)
            return True
        except mysql.connector.Error as e:
            logger.warning("database ping failed: %s", e)
            return False
        finally:
            if conn is not None:
                conn.close()

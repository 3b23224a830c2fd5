"""Event bus client (RabbitMQ through kombu).

The exchange is a durable topic exchange; messages are JSON, persistent,
published with kombu's retrying producer so a dropped connection is
re-established before the publish is reported as failed. Producers come from
kombu's connection pool, so concurrent request threads stay isolated.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from kombu import Connection, Exchange
from kombu.exceptions import KombuError
from kombu.pools import producers

from ..core.constants import EVENTS_EXCHANGE
from ..core.exceptions import PublishError

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    def publish(self, exchange: str, routing_key: str, payload: dict[str, Any]) -> None:
        """Publish synchronously; raise ``PublishError`` when the bus refuses."""

        raise NotImplementedError


class KombuEventPublisher(EventPublisher):
    def __init__(self, connection: Connection, *, timeout: float = 5.0, max_retries: int = 3):
        self._connection = connection
        self._timeout = float(timeout)
        self._max_retries = int(max_retries)
        self._exchanges: dict[str, Exchange] = {}

    def _exchange(self, name: str) -> Exchange:
        if name not in self._exchanges:
            self._exchanges[name] = Exchange(name, type="topic", durable=True)
        return self._exchanges[name]

    def publish(self, exchange: str, routing_key: str, payload: dict[str, Any]) -> None:
        ex = self._exchange(exchange)
        errors = (KombuError, OSError) + tuple(self._connection.connection_errors) + tuple(
            self._connection.channel_errors
        )
        try:
            # One pooled connection and channel per publish.
            with producers[self._connection].acquire(block=True, timeout=self._timeout) as producer:
                producer.publish(
                    payload,
                    exchange=ex,
                    routing_key=routing_key,
                    serializer="json",
                    delivery_mode=2,
                    declare=[ex],
                    retry=True,
                    retry_policy={"max_retries": self._max_retries, "interval_start": 0.2, "interval_step": 0.5},
                    timeout=self._timeout,
                )
        except errors as e:
            raise PublishError("Failed to publish event", detail=f"{exchange}/{routing_key}: {e}") from e
        logger.info("event published exchange=%s routing_key=%s", exchange, routing_key)

    def close(self) -> None:
        self._connection.release()


def connect_publisher(url: str, *, timeout: float = 5.0) -> Optional[KombuEventPublisher]:
    """Return a connected publisher, or ``None`` when no broker is reachable.

    ``None`` puts registration in development mode: events stay in the outbox
    until a relay with a working publisher drains them.
    """

    if not url:
        logger.warning("RABBITMQ_URL not set; event publishing disabled")
        return None
    # confirm_publish makes a broker nack surface as an exception.
    connection = Connection(url, connect_timeout=timeout, transport_options={"confirm_publish": True})
    errors = (KombuError, OSError) + tuple(connection.connection_errors)
    try:
        connection.ensure_connection(max_retries=1)
    except errors as e:
        logger.warning("event bus unavailable (%s); event publishing disabled", e)
        connection.release()
        return None
    logger.info("event bus connected; exchange=%s", EVENTS_EXCHANGE)
    return KombuEventPublisher(connection, timeout=timeout)

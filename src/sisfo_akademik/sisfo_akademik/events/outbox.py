from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_OUTBOX_BATCH_SIZE
from ..core.enums import OutboxStatus
from ..core.exceptions import PersistenceError, PublishError
from .model import OutboxEvent
from .publisher import EventPublisher
from .repository import OutboxRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelayResult:
    published: int = 0
    failed: int = 0
    skipped: int = 0


class OutboxRelay:
    """Moves committed outbox events onto the event bus.

    Without a publisher every event stays pending; that is the development
    mode where the bus was unreachable at startup.
    """

    def __init__(
        self,
        outbox: OutboxRepository,
        publisher: Optional[EventPublisher],
        *,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._outbox = outbox
        self._publisher = publisher
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._publisher is not None

    def publish_now(self, event: OutboxEvent) -> OutboxEvent:
        """Publish ``event`` and return it marked published, without touching the outbox.

        Used while the caller's transaction is still open: a ``PublishError``
        propagates so the caller can roll back.
        """

        if self._publisher is None:
            raise PublishError("Event bus not configured", detail=f"event {event.id}")
        self._publisher.publish(event.exchange, event.routing_key, event.payload)
        return replace(event, status=OutboxStatus.PUBLISHED, published_at=self._clock())

    def dispatch(self, event: OutboxEvent) -> bool:
        """Publish one stored event; ``True`` once the bus acknowledged it.

        A ``PublishError`` is recorded on the row and re-raised. Failing to
        record the outcome is logged only; the publish result stands.
        """

        if event.status is OutboxStatus.PUBLISHED:
            return True
        if self._publisher is None:
            logger.warning("event %s left pending: no event bus configured", event.id)
            return False
        try:
            self._publisher.publish(event.exchange, event.routing_key, event.payload)
        except PublishError as e:
            try:
                self._outbox.record_failure(event.id, e.detail)
            except PersistenceError as pe:
                logger.error("event %s: could not record publish failure: %s", event.id, pe.detail)
            raise
        try:
            self._outbox.mark_published(event.id, self._clock())
        except PersistenceError as e:
            logger.error("event %s published but still marked pending: %s", event.id, e.detail)
        return True

    def dispatch_by_id(self, event_id: uuid.UUID) -> bool:
        event = self._outbox.get_by_id(event_id)
        if event is None:
            return False
        return self.dispatch(event)

    def dispatch_pending(self, *, limit: int = DEFAULT_OUTBOX_BATCH_SIZE) -> RelayResult:
        if self._publisher is None:
            pending = len(self._outbox.list_pending(limit))
            return RelayResult(skipped=pending)

        published = failed = 0
        for event in self._outbox.list_pending(limit):
            try:
                self.dispatch(event)
                published += 1
            except PublishError as e:
                failed += 1
                logger.warning("event %s publish failed (attempt %d): %s", event.id, event.attempts + 1, e.detail)
        if published or failed:
            logger.info("outbox relay published=%d failed=%d", published, failed)
        return RelayResult(published=published, failed=failed)

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import OutboxEvent


class OutboxRepository(Protocol):
    def get_by_id(self, event_id: uuid.UUID) -> Optional[OutboxEvent]:
        raise NotImplementedError

    def list_pending(self, limit: int) -> Sequence[OutboxEvent]:
        """Oldest pending events first."""

        raise NotImplementedError

    def mark_published(self, event_id: uuid.UUID, published_at: datetime) -> bool:
        raise NotImplementedError

    def record_failure(self, event_id: uuid.UUID, error: str) -> bool:
        raise NotImplementedError

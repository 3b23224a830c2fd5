from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..core.enums import OutboxStatus


@dataclass(frozen=True)
class OutboxEvent:
    """A domain event committed with the state change that caused it."""

    id: uuid.UUID
    exchange: str
    routing_key: str
    payload: dict[str, Any]
    created_at: datetime
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    published_at: Optional[datetime] = None

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import ApplicationDocument


class DocumentRepository(Protocol):
    def create(self, document: ApplicationDocument) -> None:
        raise NotImplementedError

    def get_by_id(self, document_id: uuid.UUID) -> Optional[ApplicationDocument]:
        """Non-deleted document or ``None``."""

        raise NotImplementedError

    def list_by_application(self, application_id: uuid.UUID) -> Sequence[ApplicationDocument]:
        raise NotImplementedError

    def soft_delete(self, document_id: uuid.UUID, deleted_at: datetime) -> bool:
        raise NotImplementedError

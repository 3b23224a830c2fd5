from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Optional


@dataclass(frozen=True)
class ApplicationDocument:
    """Metadata for one uploaded file; ``deleted_at`` marks a soft delete."""

    id: uuid.UUID
    application_id: uuid.UUID
    document_type: str
    file_url: str
    file_name: str
    file_size: int
    uploaded_at: datetime
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    size: int
    stream: BinaryIO

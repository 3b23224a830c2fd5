from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AdmissionPeriod:
    """Domain entity: a named admission window."""

    id: uuid.UUID
    name: str
    start_date: datetime
    end_date: datetime
    is_active: bool
    is_announced: bool
    created_at: datetime
    updated_at: datetime

    def validation_errors(self) -> dict[str, str]:
        errors: dict[str, str] = {}
        if not self.name or not self.name.strip():
            errors["name"] = "Name is required"
        if self.end_date < self.start_date:
            errors["end_date"] = "End date must be after start date"
        return errors

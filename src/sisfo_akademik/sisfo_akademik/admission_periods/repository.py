from __future__ import annotations

import uuid
from typing import Optional, Protocol, Sequence

from .model import AdmissionPeriod


class AdmissionPeriodRepository(Protocol):
    """Persistence for admission periods.

    Writing a period with ``is_active=True`` deactivates every other period in
    the same transaction, so the active lookup is unambiguous.
    """

    def create(self, period: AdmissionPeriod) -> None:
        raise NotImplementedError

    def get_by_id(self, period_id: uuid.UUID) -> Optional[AdmissionPeriod]:
        raise NotImplementedError

    def get_active(self) -> Optional[AdmissionPeriod]:
        raise NotImplementedError

    def list(self) -> Sequence[AdmissionPeriod]:
        """All periods, newest start date first."""

        raise NotImplementedError

    def update(self, period: AdmissionPeriod) -> bool:
        raise NotImplementedError

    def delete(self, period_id: uuid.UUID) -> bool:
        raise NotImplementedError

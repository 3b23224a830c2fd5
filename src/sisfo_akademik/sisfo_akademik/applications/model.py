from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.constants import AVERAGE_SCORE_WEIGHT, INTERVIEW_SCORE_WEIGHT, TEST_SCORE_WEIGHT
from ..core.enums import ApplicationStatus


def compute_final_score(test_score: float, interview_score: float, average_score: float) -> float:
    return (
        TEST_SCORE_WEIGHT * test_score
        + INTERVIEW_SCORE_WEIGHT * interview_score
        + AVERAGE_SCORE_WEIGHT * average_score
    )


@dataclass(frozen=True)
class Application:
    """Domain entity: a prospective student's dossier for one admission period.

    ``version`` is the optimistic concurrency token; every persisted update
    bumps it.
    """

    id: uuid.UUID
    tenant_id: str
    admission_period_id: uuid.UUID
    registration_number: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    status: ApplicationStatus
    previous_school: str
    average_score: float
    submission_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    test_score: Optional[float] = None
    interview_score: Optional[float] = None
    final_score: Optional[float] = None
    version: int = 1

    @property
    def has_both_scores(self) -> bool:
        return self.test_score is not None and self.interview_score is not None

    def expected_final_score(self) -> Optional[float]:
        if not self.has_both_scores:
            return None
        return compute_final_score(self.test_score, self.interview_score, self.average_score)


@dataclass(frozen=True)
class ApplicationFilter:
    """Typed list filter; ``None`` fields do not constrain the query."""

    admission_period_id: Optional[uuid.UUID] = None
    status: Optional[ApplicationStatus] = None
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class NewApplication:
    admission_period_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone_number: str
    previous_school: str
    average_score: float
    tenant_id: Optional[str] = None

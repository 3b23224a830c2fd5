from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..applications.model import ApplicationFilter
from ..applications.repository import ApplicationRepository
from ..common.datetime_utils import now_utc
from ..common.deadline import Deadline
from ..common.validators import require_score
from ..core.constants import DEFAULT_OPERATION_TIMEOUT_SECONDS
from ..core.enums import ApplicationStatus
from ..core.exceptions import (
    AlreadyAnnouncedError,
    ConflictError,
    NotFoundError,
    ReferencedRowError,
    ValidationError,
)
from .model import AdmissionPeriod
from .repository import AdmissionPeriodRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodInput:
    name: str
    start_date: datetime
    end_date: datetime
    is_active: bool = False


@dataclass(frozen=True)
class AnnouncementResult:
    period_id: uuid.UUID
    passing_grade: float
    accepted: int
    rejected: int
    unchanged: int
    unscored: int


class AdmissionPeriodService:
    def __init__(
        self,
        periods: AdmissionPeriodRepository,
        applications: ApplicationRepository,
        *,
        timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        monotonic: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._periods = periods
        self._applications = applications
        self._timeout = float(timeout)
        self._clock = clock
        self._monotonic = monotonic
        self._id_factory = id_factory

    def _deadline(self) -> Deadline:
        return Deadline.start(self._timeout, clock=self._monotonic)

    @staticmethod
    def _validate(period: AdmissionPeriod) -> None:
        errors = period.validation_errors()
        if errors:
            message = next(iter(errors.values()))
            raise ValidationError(message, detail="; ".join(f"{k}: {v}" for k, v in errors.items()))

    def _load(self, period_id: uuid.UUID, deadline: Deadline) -> AdmissionPeriod:
        deadline.check("load admission period")
        period = self._periods.get_by_id(period_id)
        if period is None:
            raise NotFoundError("Admission period not found", detail=f"admission period {period_id} does not exist")
        return period

    def create(self, data: PeriodInput) -> AdmissionPeriod:
        deadline = self._deadline()
        now = self._clock()
        period = AdmissionPeriod(
            id=self._id_factory(),
            name=(data.name or "").strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            is_active=bool(data.is_active),
            is_announced=False,
            created_at=now,
            updated_at=now,
        )
        self._validate(period)

        deadline.check("create admission period")
        self._periods.create(period)
        logger.info("admission period created id=%s name=%s active=%s", period.id, period.name, period.is_active)
        return period

    def get(self, period_id: uuid.UUID) -> AdmissionPeriod:
        return self._load(period_id, self._deadline())

    def get_active(self) -> AdmissionPeriod:
        deadline = self._deadline()
        deadline.check("load active admission period")
        period = self._periods.get_active()
        if period is None:
            raise NotFoundError("No active admission period", detail="no admission period is active")
        return period

    def list(self) -> Sequence[AdmissionPeriod]:
        deadline = self._deadline()
        deadline.check("list admission periods")
        return self._periods.list()

    def update(self, period_id: uuid.UUID, data: PeriodInput) -> AdmissionPeriod:
        deadline = self._deadline()
        current = self._load(period_id, deadline)
        updated = replace(
            current,
            name=(data.name or "").strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            is_active=bool(data.is_active),
            updated_at=self._clock(),
        )
        self._validate(updated)

        deadline.check("update admission period")
        if not self._periods.update(updated):
            raise NotFoundError("Admission period not found", detail=f"admission period {period_id} does not exist")
        return updated

    def delete(self, period_id: uuid.UUID) -> None:
        deadline = self._deadline()
        period = self._load(period_id, deadline)
        if period.is_announced:
            raise ConflictError("Announced periods cannot be deleted", detail=f"admission period {period_id}")

        deadline.check("list applications")
        if self._applications.list(ApplicationFilter(admission_period_id=period_id)):
            raise ConflictError(
                "Admission period has applications",
                detail=f"admission period {period_id} still has applications",
            )

        deadline.check("delete admission period")
        try:
            deleted = self._periods.delete(period_id)
        except ReferencedRowError as e:
            # An application submitted after the check above.
            raise ConflictError("Admission period has applications", detail=e.detail) from e
        if not deleted:
            raise NotFoundError("Admission period not found", detail=f"admission period {period_id} does not exist")
        logger.info("admission period deleted id=%s", period_id)

    def announce_results(self, period_id: uuid.UUID, passing_grade: float) -> AnnouncementResult:
        """Accept or reject every scored application, then close the period.

        Rows are written one at a time; the first failing write aborts the batch
        and leaves the period unannounced, so a retry finishes the remaining
        rows. Rows already holding their decided status are not rewritten;
        registered rows are never touched.
        """

        deadline = self._deadline()
        grade = require_score(passing_grade, "passing_grade")

        period = self._load(period_id, deadline)
        if period.is_announced:
            raise AlreadyAnnouncedError("Results already announced", detail=f"admission period {period_id}")

        deadline.check("list applications")
        apps = self._applications.list(ApplicationFilter(admission_period_id=period_id))

        accepted = rejected = unchanged = unscored = 0
        for app in apps:
            if app.final_score is None:
                unscored += 1
                continue
            if not app.status.can_be_announced:
                unchanged += 1
                continue

            decided = ApplicationStatus.ACCEPTED if app.final_score >= grade else ApplicationStatus.REJECTED
            if decided == ApplicationStatus.ACCEPTED:
                accepted += 1
            else:
                rejected += 1
            if app.status == decided:
                continue

            deadline.check("update application")
            self._applications.update(replace(app, status=decided, updated_at=self._clock()))

        deadline.check("update admission period")
        self._periods.update(replace(period, is_announced=True, updated_at=self._clock()))

        result = AnnouncementResult(
            period_id=period_id,
            passing_grade=grade,
            accepted=accepted,
            rejected=rejected,
            unchanged=unchanged,
            unscored=unscored,
        )
        logger.info(
            "results announced period=%s grade=%g accepted=%d rejected=%d unscored=%d",
            period_id, grade, accepted, rejected, unscored,
        )
        return result

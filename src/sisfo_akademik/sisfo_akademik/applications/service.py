from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..admission_periods.repository import AdmissionPeriodRepository
from ..common.datetime_utils import now_utc
from ..common.deadline import Deadline
from ..common.validators import require_non_empty, require_score
from ..core.constants import (
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    DEFAULT_TENANT_ID,
    EVENTS_EXCHANGE,
    REGISTRATION_NUMBER_ATTEMPTS,
    STUDENT_REGISTERED_ROUTING_KEY,
)
from ..core.enums import VERIFICATION_TARGETS, ApplicationStatus
from ..core.exceptions import (
    AlreadyAnnouncedError,
    AlreadyRegisteredError,
    DuplicateKeyError,
    DuplicateRegistrationNumberError,
    InvalidStateError,
    NotFoundError,
    PublishError,
    ValidationError,
)
from ..events.model import OutboxEvent
from ..events.outbox import OutboxRelay
from .model import Application, ApplicationFilter, NewApplication
from .registration_number import RegistrationNumberGenerator
from .repository import ApplicationRepository

logger = logging.getLogger(__name__)


class ApplicationService:
    """Admission workflow: submission, verification, scoring and registration.

    Every entry point runs under its own deadline; each read-modify-write goes
    through the repository's optimistic version check.
    """

    def __init__(
        self,
        applications: ApplicationRepository,
        periods: AdmissionPeriodRepository,
        relay: OutboxRelay,
        *,
        registration_numbers: Optional[RegistrationNumberGenerator] = None,
        timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        monotonic: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._applications = applications
        self._periods = periods
        self._relay = relay
        self._registration_numbers = registration_numbers or RegistrationNumberGenerator()
        self._timeout = float(timeout)
        self._clock = clock
        self._monotonic = monotonic
        self._id_factory = id_factory

    def _deadline(self) -> Deadline:
        return Deadline.start(self._timeout, clock=self._monotonic)

    def _load(self, application_id: uuid.UUID, deadline: Deadline) -> Application:
        deadline.check("load application")
        app = self._applications.get_by_id(application_id)
        if app is None:
            raise NotFoundError("Application not found", detail=f"application {application_id} does not exist")
        return app

    def submit(self, data: NewApplication) -> Application:
        deadline = self._deadline()

        first_name = require_non_empty(data.first_name, "first_name")
        last_name = require_non_empty(data.last_name, "last_name")
        email = require_non_empty(data.email, "email")
        phone = require_non_empty(data.phone_number, "phone_number")
        previous_school = require_non_empty(data.previous_school, "previous_school")
        average = require_score(data.average_score, "average_score")
        tenant_id = (data.tenant_id or "").strip() or DEFAULT_TENANT_ID

        deadline.check("load admission period")
        if self._periods.get_by_id(data.admission_period_id) is None:
            raise NotFoundError(
                "Admission period not found",
                detail=f"admission period {data.admission_period_id} does not exist",
            )

        now = self._clock()
        for attempt in range(1, REGISTRATION_NUMBER_ATTEMPTS + 1):
            app = Application(
                id=self._id_factory(),
                tenant_id=tenant_id,
                admission_period_id=data.admission_period_id,
                registration_number=self._registration_numbers.generate(now),
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone_number=phone,
                status=ApplicationStatus.SUBMITTED,
                previous_school=previous_school,
                average_score=average,
                submission_date=now,
                created_at=now,
                updated_at=now,
            )
            deadline.check("create application")
            try:
                self._applications.create(app)
            except DuplicateKeyError:
                logger.warning(
                    "registration number %s already taken (attempt %d/%d)",
                    app.registration_number,
                    attempt,
                    REGISTRATION_NUMBER_ATTEMPTS,
                )
                continue
            logger.info("application submitted id=%s registration_number=%s", app.id, app.registration_number)
            return app

        raise DuplicateRegistrationNumberError(
            "Could not allocate a registration number",
            detail=f"{REGISTRATION_NUMBER_ATTEMPTS} consecutive collisions",
        )

    def get(self, application_id: uuid.UUID) -> Application:
        return self._load(application_id, self._deadline())

    def get_status(self, registration_number: str) -> Application:
        deadline = self._deadline()
        number = require_non_empty(registration_number, "registration_number")
        deadline.check("load application")
        app = self._applications.get_by_registration_number(number)
        if app is None:
            raise NotFoundError("Application not found", detail=f"no application with registration number {number}")
        return app

    def list(self, application_filter: ApplicationFilter) -> Sequence[Application]:
        deadline = self._deadline()
        deadline.check("list applications")
        return self._applications.list(application_filter)

    def verify(self, application_id: uuid.UUID, status: ApplicationStatus) -> Application:
        deadline = self._deadline()
        if status not in VERIFICATION_TARGETS:
            raise ValidationError(
                "Invalid verification status",
                detail="status must be one of: " + ", ".join(sorted(s.value for s in VERIFICATION_TARGETS)),
            )

        app = self._load(application_id, deadline)
        if app.status == status:
            return app
        if not app.status.can_transition_to(status):
            raise InvalidStateError(
                "Application cannot be verified in its current status",
                detail=f"{app.status.value} -> {status.value} is not allowed",
            )

        deadline.check("update application")
        updated = self._applications.update(replace(app, status=status, updated_at=self._clock()))
        logger.info("application %s verified: %s -> %s", app.id, app.status.value, status.value)
        return updated

    def _set_score(self, application_id: uuid.UUID, field_name: str, score: float) -> Application:
        deadline = self._deadline()
        value = require_score(score, "score")

        app = self._load(application_id, deadline)
        if app.status == ApplicationStatus.REGISTERED:
            raise InvalidStateError("Registered applications cannot be re-scored", detail=f"application {app.id}")

        deadline.check("load admission period")
        period = self._periods.get_by_id(app.admission_period_id)
        if period is not None and period.is_announced:
            raise AlreadyAnnouncedError(
                "Results already announced",
                detail=f"admission period {period.id} is closed for score changes",
            )

        deadline.check("update application")
        return self._applications.update(replace(app, **{field_name: value, "updated_at": self._clock()}))

    def input_test_score(self, application_id: uuid.UUID, score: float) -> Application:
        return self._set_score(application_id, "test_score", score)

    def input_interview_score(self, application_id: uuid.UUID, score: float) -> Application:
        return self._set_score(application_id, "interview_score", score)

    def calculate_final_scores(self, period_id: uuid.UUID) -> int:
        """Recompute ``final_score`` for every fully-scored application.

        Applications missing a score are skipped; rows whose stored value
        already matches are not rewritten. Returns the number of rows written.
        """

        deadline = self._deadline()
        deadline.check("load admission period")
        if self._periods.get_by_id(period_id) is None:
            raise NotFoundError("Admission period not found", detail=f"admission period {period_id} does not exist")

        deadline.check("list applications")
        apps = self._applications.list(ApplicationFilter(admission_period_id=period_id))

        written = 0
        for app in apps:
            final = app.expected_final_score()
            if final is None or app.final_score == final:
                continue
            deadline.check("update application")
            self._applications.update(replace(app, final_score=final, updated_at=self._clock()))
            written += 1

        logger.info("final scores calculated period=%s applications=%d updated=%d", period_id, len(apps), written)
        return written

    def register(self, application_id: uuid.UUID) -> Application:
        """Enrol an accepted applicant.

        The status change and the ``admission.student.registered`` event are
        committed in one transaction, and the event is published before that
        commit. When the bus rejects it the transaction rolls back: the
        application stays ``accepted`` and ``PublishError`` propagates. With no
        bus configured the event is stored pending for a later relay pass.
        """

        deadline = self._deadline()
        app = self._load(application_id, deadline)

        if app.status == ApplicationStatus.REGISTERED:
            raise AlreadyRegisteredError("Student already registered", detail=f"application {app.id}")
        if not app.status.can_transition_to(ApplicationStatus.REGISTERED):
            raise InvalidStateError(
                "Application must be accepted to register",
                detail=f"application {app.id} is {app.status.value}",
            )

        now = self._clock()
        event = OutboxEvent(
            id=self._id_factory(),
            exchange=EVENTS_EXCHANGE,
            routing_key=STUDENT_REGISTERED_ROUTING_KEY,
            payload={
                "tenant_id": app.tenant_id,
                "application_id": str(app.id),
                "registration_number": app.registration_number,
                "first_name": app.first_name,
                "last_name": app.last_name,
                "email": app.email,
                "phone_number": app.phone_number,
                "timestamp": now.isoformat() + "Z",
            },
            created_at=now,
        )

        def publish(pending: OutboxEvent) -> OutboxEvent:
            deadline.check("publish registration event")
            return self._relay.publish_now(pending)

        deadline.check("register application")
        try:
            registered = self._applications.mark_registered(
                replace(app, status=ApplicationStatus.REGISTERED, updated_at=now),
                event,
                publish=publish if self._relay.enabled else None,
            )
        except PublishError as e:
            logger.error("registration of application %s rolled back: %s", app.id, e.detail)
            raise

        if not self._relay.enabled:
            logger.warning("no event bus configured; registration event %s left pending", event.id)
        logger.info("application %s registered registration_number=%s", app.id, app.registration_number)
        return registered

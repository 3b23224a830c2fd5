from __future__ import annotations

import re
import uuid
from dataclasses import replace
from datetime import datetime

import pytest

from src.sisfo_akademik.sisfo_akademik.admission_periods.service import PeriodInput
from src.sisfo_akademik.sisfo_akademik.applications.model import ApplicationFilter, NewApplication
from src.sisfo_akademik.sisfo_akademik.core.constants import EVENTS_EXCHANGE, STUDENT_REGISTERED_ROUTING_KEY
from src.sisfo_akademik.sisfo_akademik.core.enums import ApplicationStatus, OutboxStatus
from src.sisfo_akademik.sisfo_akademik.core.exceptions import (
    AlreadyAnnouncedError,
    AlreadyRegisteredError,
    DeadlineExceededError,
    DuplicateRegistrationNumberError,
    InvalidStateError,
    NotFoundError,
    PublishError,
    StaleWriteError,
    ValidationError,
)


def _open_period(world):
    return world.period_service.create(
        PeriodInput(name="2026/2027", start_date=datetime(2026, 1, 1), end_date=datetime(2026, 6, 30), is_active=True)
    )


def _submit(world, period_id, **overrides):
    data = dict(
        admission_period_id=period_id,
        first_name="John",
        last_name="Doe",
        email="j@x",
        phone_number="1",
        previous_school="H",
        average_score=85.0,
    )
    data.update(overrides)
    return world.application_service.submit(NewApplication(**data))


def _scored(world, period_id, test, interview, average=85.0):
    app = _submit(world, period_id, average_score=average)
    world.application_service.input_test_score(app.id, test)
    world.application_service.input_interview_score(app.id, interview)
    return app


def _accepted(world):
    period = _open_period(world)
    app = _scored(world, period.id, 80, 90)
    world.application_service.calculate_final_scores(period.id)
    world.period_service.announce_results(period.id, 80)
    return world.application_service.get(app.id)


def test_submit_assigns_registration_number_and_status(admission, fixed_now):
    period = _open_period(admission)

    app = _submit(admission, period.id)

    assert app.status == ApplicationStatus.SUBMITTED
    assert re.match(r"^REG-\d{8}-\d{4}$", app.registration_number)
    assert app.registration_number == "REG-20260302-1234"
    assert app.submission_date == fixed_now
    assert app.tenant_id == "default"
    assert admission.applications.get_by_id(app.id) == app


def test_submit_keeps_explicit_tenant(admission):
    period = _open_period(admission)
    app = _submit(admission, period.id, tenant_id="school-a")
    assert app.tenant_id == "school-a"


def test_submit_requires_personal_fields(admission):
    period = _open_period(admission)
    with pytest.raises(ValidationError):
        _submit(admission, period.id, first_name="  ")


def test_submit_rejects_out_of_range_average(admission):
    period = _open_period(admission)
    with pytest.raises(ValidationError):
        _submit(admission, period.id, average_score=100.5)


def test_submit_unknown_period_is_not_found(admission):
    with pytest.raises(NotFoundError):
        _submit(admission, uuid.uuid4())


def test_submit_retries_on_registration_number_collision(admission):
    period = _open_period(admission)
    admission.random.values = [1234, 1234, 5678]
    first = _submit(admission, period.id)

    second = _submit(admission, period.id, first_name="Jane")

    assert first.registration_number == "REG-20260302-1234"
    assert second.registration_number == "REG-20260302-5678"


def test_submit_gives_up_after_repeated_collisions(admission):
    period = _open_period(admission)
    admission.random.values = [42]
    _submit(admission, period.id)

    with pytest.raises(DuplicateRegistrationNumberError):
        _submit(admission, period.id, first_name="Jane")
    assert len(admission.applications.items) == 1


def test_status_lookup_by_registration_number(admission):
    period = _open_period(admission)
    app = _submit(admission, period.id)

    assert admission.application_service.get_status(app.registration_number).id == app.id
    with pytest.raises(NotFoundError):
        admission.application_service.get_status("REG-20990101-0000")


def test_list_filters_by_period_and_status(admission):
    period = _open_period(admission)
    other = admission.period_service.create(
        PeriodInput(name="Other", start_date=datetime(2025, 1, 1), end_date=datetime(2025, 6, 30))
    )
    a = _submit(admission, period.id)
    _submit(admission, other.id, first_name="Jane")
    admission.application_service.verify(a.id, ApplicationStatus.VERIFIED)

    by_period = admission.application_service.list(ApplicationFilter(admission_period_id=period.id))
    verified = admission.application_service.list(ApplicationFilter(status=ApplicationStatus.VERIFIED))

    assert [x.id for x in by_period] == [a.id]
    assert [x.id for x in verified] == [a.id]


def test_verify_follows_transition_table(admission):
    period = _open_period(admission)
    app = _submit(admission, period.id)

    verified = admission.application_service.verify(app.id, ApplicationStatus.VERIFIED)
    again = admission.application_service.verify(app.id, ApplicationStatus.VERIFIED)
    rejected = admission.application_service.verify(app.id, ApplicationStatus.REJECTED)

    assert verified.status == ApplicationStatus.VERIFIED
    assert again.version == verified.version
    assert rejected.status == ApplicationStatus.REJECTED
    with pytest.raises(InvalidStateError):
        admission.application_service.verify(app.id, ApplicationStatus.VERIFIED)


def test_verify_rejects_non_verification_targets(admission):
    period = _open_period(admission)
    app = _submit(admission, period.id)
    with pytest.raises(ValidationError):
        admission.application_service.verify(app.id, ApplicationStatus.ACCEPTED)


def test_verify_unknown_application(admission):
    with pytest.raises(NotFoundError):
        admission.application_service.verify(uuid.uuid4(), ApplicationStatus.VERIFIED)


@pytest.mark.parametrize("score", [0, 100, 55.5])
def test_score_entry_accepts_boundaries(admission, score):
    period = _open_period(admission)
    app = _submit(admission, period.id)

    updated = admission.application_service.input_test_score(app.id, score)

    assert updated.test_score == score
    assert updated.final_score is None


@pytest.mark.parametrize("score", [-0.1, 100.01, "80", True, None])
def test_score_entry_rejects_invalid_values(admission, score):
    period = _open_period(admission)
    app = _submit(admission, period.id)
    with pytest.raises(ValidationError):
        admission.application_service.input_interview_score(app.id, score)


def test_calculate_final_scores_weights_and_skips_partial(admission):
    period = _open_period(admission)
    full = _scored(admission, period.id, 80, 90, 85.0)
    partial = _submit(admission, period.id, first_name="Jane")
    admission.application_service.input_test_score(partial.id, 70)

    written = admission.application_service.calculate_final_scores(period.id)
    rerun = admission.application_service.calculate_final_scores(period.id)

    assert written == 1
    assert rerun == 0
    assert admission.applications.get_by_id(full.id).final_score == pytest.approx(85.0, abs=1e-9)
    assert admission.applications.get_by_id(partial.id).final_score is None


def test_calculate_final_scores_unknown_period(admission):
    with pytest.raises(NotFoundError):
        admission.application_service.calculate_final_scores(uuid.uuid4())


def test_scores_locked_after_announcement(admission):
    period = _open_period(admission)
    app = _scored(admission, period.id, 80, 90)
    admission.application_service.calculate_final_scores(period.id)
    admission.period_service.announce_results(period.id, 80)

    with pytest.raises(AlreadyAnnouncedError):
        admission.application_service.input_test_score(app.id, 10)


def test_register_publishes_event_then_marks_registered(admission, fixed_now):
    app = _accepted(admission)
    assert app.status == ApplicationStatus.ACCEPTED

    registered = admission.application_service.register(app.id)

    assert registered.status == ApplicationStatus.REGISTERED
    assert len(admission.publisher.published) == 1
    exchange, routing_key, payload = admission.publisher.published[0]
    assert exchange == EVENTS_EXCHANGE == "sisfo.events"
    assert routing_key == STUDENT_REGISTERED_ROUTING_KEY == "admission.student.registered"
    assert payload == {
        "tenant_id": "default",
        "application_id": str(app.id),
        "registration_number": app.registration_number,
        "first_name": "John",
        "last_name": "Doe",
        "email": "j@x",
        "phone_number": "1",
        "timestamp": fixed_now.isoformat() + "Z",
    }
    (event,) = admission.outbox.items.values()
    assert event.status is OutboxStatus.PUBLISHED
    assert event.published_at == fixed_now


def test_register_twice_is_already_registered(admission):
    app = _accepted(admission)
    admission.application_service.register(app.id)

    with pytest.raises(AlreadyRegisteredError):
        admission.application_service.register(app.id)
    assert len(admission.publisher.published) == 1


@pytest.mark.parametrize("status", [ApplicationStatus.SUBMITTED, ApplicationStatus.VERIFIED, ApplicationStatus.REJECTED])
def test_register_requires_accepted(admission, status):
    period = _open_period(admission)
    app = _submit(admission, period.id)
    stored = admission.applications.items[app.id]
    admission.applications.items[app.id] = replace(stored, status=status)

    with pytest.raises(InvalidStateError):
        admission.application_service.register(app.id)
    assert admission.outbox.items == {}


def test_register_unknown_application(admission):
    with pytest.raises(NotFoundError):
        admission.application_service.register(uuid.uuid4())


def test_register_rolls_back_when_publish_is_rejected(failing_admission):
    app = _accepted(failing_admission)
    version = failing_admission.applications.items[app.id].version

    with pytest.raises(PublishError) as exc:
        failing_admission.application_service.register(app.id)

    assert exc.value.http_status == 500
    assert exc.value.error_code == "5001"
    stored = failing_admission.applications.items[app.id]
    assert stored.status == ApplicationStatus.ACCEPTED
    assert stored.version == version
    assert failing_admission.outbox.items == {}


def test_register_succeeds_once_the_bus_accepts_again(failing_admission):
    app = _accepted(failing_admission)
    with pytest.raises(PublishError):
        failing_admission.application_service.register(app.id)

    failing_admission.publisher.fail = False
    registered = failing_admission.application_service.register(app.id)

    assert registered.status == ApplicationStatus.REGISTERED
    assert len(failing_admission.publisher.published) == 1
    (event,) = failing_admission.outbox.items.values()
    assert event.status is OutboxStatus.PUBLISHED


def test_register_deadline_before_publish_rolls_back(admission, monkeypatch):
    app = _accepted(admission)
    slow = _wrap_with_delay(admission, admission.applications.mark_registered)
    monkeypatch.setattr(admission.applications, "mark_registered", slow)

    with pytest.raises(DeadlineExceededError):
        admission.application_service.register(app.id)

    assert admission.applications.items[app.id].status == ApplicationStatus.ACCEPTED
    assert admission.publisher.published == []
    assert admission.outbox.items == {}


def _wrap_with_delay(world, mark_registered):
    def delayed(application, event, *, publish=None):
        world.monotonic.advance(60)
        return mark_registered(application, event, publish=publish)

    return delayed


def test_register_without_event_bus_still_registers(offline_admission):
    app = _accepted(offline_admission)

    registered = offline_admission.application_service.register(app.id)

    assert registered.status == ApplicationStatus.REGISTERED
    (event,) = offline_admission.outbox.items.values()
    assert event.status is OutboxStatus.PENDING
    assert event.attempts == 0


def test_concurrent_register_only_one_wins(admission, monkeypatch):
    app = _accepted(admission)
    stale = admission.applications.get_by_id(app.id)
    admission.application_service.register(app.id)

    # A second caller that loaded the row before the first commit.
    monkeypatch.setattr(admission.applications, "get_by_id", lambda _id: stale)
    with pytest.raises(StaleWriteError):
        admission.application_service.register(app.id)

    assert len(admission.outbox.items) == 1
    assert len(admission.publisher.published) == 1


def test_batch_stops_when_deadline_expires(admission, monkeypatch):
    period = _open_period(admission)
    _scored(admission, period.id, 80, 90)
    original_list = admission.applications.list

    def slow_list(application_filter):
        admission.monotonic.advance(6)
        return original_list(application_filter)

    monkeypatch.setattr(admission.applications, "list", slow_list)
    with pytest.raises(DeadlineExceededError):
        admission.application_service.calculate_final_scores(period.id)

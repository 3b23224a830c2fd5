from __future__ import annotations

from enum import Enum


class ApplicationStatus(str, Enum):
    """Lifecycle of an admission application."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    REGISTERED = "registered"

    def can_transition_to(self, target: "ApplicationStatus") -> bool:
        return target in _TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    @property
    def can_be_announced(self) -> bool:
        """Announcement may (re)decide any row except one already enrolled."""

        return self is not ApplicationStatus.REGISTERED


_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: frozenset({ApplicationStatus.SUBMITTED}),
    ApplicationStatus.SUBMITTED: frozenset(
        {ApplicationStatus.VERIFIED, ApplicationStatus.REJECTED, ApplicationStatus.ACCEPTED}
    ),
    ApplicationStatus.VERIFIED: frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.ACCEPTED: frozenset({ApplicationStatus.REGISTERED}),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.REGISTERED: frozenset(),
}

VERIFICATION_TARGETS = frozenset({ApplicationStatus.VERIFIED, ApplicationStatus.REJECTED})


class AttendanceStatus(str, Enum):
    """Attendance mark shared by students and teachers."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"
    SICK = "sick"


class OutboxStatus(str, Enum):
    PENDING = "pending"
    PUBLISHED = "published"

from __future__ import annotations

from enum import Enum


class EnrollmentStatus(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[EnrollmentStatus, set[EnrollmentStatus]] = {
    EnrollmentStatus.RUNNING: {
        EnrollmentStatus.RUNNING,
        EnrollmentStatus.WAITING,
        EnrollmentStatus.COMPLETED,
        EnrollmentStatus.FAILED,
    },
    # A waiting enrollment whose workflow disappeared can only fail.
    EnrollmentStatus.WAITING: {EnrollmentStatus.RUNNING, EnrollmentStatus.FAILED},
    EnrollmentStatus.COMPLETED: set(),
    EnrollmentStatus.FAILED: set(),
}

TERMINAL_STATUSES: frozenset[EnrollmentStatus] = frozenset(
    {EnrollmentStatus.COMPLETED, EnrollmentStatus.FAILED}
)


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: EnrollmentStatus, to: EnrollmentStatus) -> EnrollmentStatus:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def is_terminal(status: EnrollmentStatus) -> bool:
    return status in TERMINAL_STATUSES

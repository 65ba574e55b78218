"""
Attempt state machine

State Flow: in_progress → completed | late | abandoned

Terminal states have no outgoing transitions. Services call
assert_transition before every terminal write; the write itself is a
conditional UPDATE on status = 'in_progress' so that the database decides
which of two racing transitions lands.
"""
from typing import Dict, FrozenSet

from app.exceptions import ConflictError
from app.models.test_attempt import AttemptStatus


TRANSITIONS: Dict[AttemptStatus, FrozenSet[AttemptStatus]] = {
    AttemptStatus.IN_PROGRESS: frozenset({
        AttemptStatus.COMPLETED,
        AttemptStatus.LATE,
        AttemptStatus.ABANDONED,
    }),
    AttemptStatus.COMPLETED: frozenset(),
    AttemptStatus.LATE: frozenset(),
    AttemptStatus.ABANDONED: frozenset(),
}


def can_transition(current: AttemptStatus, target: AttemptStatus) -> bool:
    return target in TRANSITIONS[current]


def attempt_conflict(attempt_id, current: AttemptStatus) -> ConflictError:
    """
    Error for a call against a finished attempt

    The body carries the attempt id and its current status so a client can
    redirect to the results view instead of retrying.
    """
    return ConflictError(
        "This attempt was already finished",
        error="attempt_already_finished",
        attempt_id=str(attempt_id),
        status=current.value,
    )


def assert_transition(attempt_id, current: AttemptStatus, target: AttemptStatus) -> None:
    """Raise ConflictError unless current → target is allowed"""
    if not can_transition(current, target):
        raise attempt_conflict(attempt_id, current)

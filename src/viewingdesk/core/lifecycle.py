"""Viewing state machine.

Pure rules only: the services in ``viewingdesk.services`` apply them under the
agent lock and persist the result.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, FrozenSet, Optional

from viewingdesk.core.errors import InvalidTransition, StaleVersion
from viewingdesk.core.models import ACTIVE_STATUSES, TERMINAL_STATUSES, Appointment, ViewingStatus

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "apply_transition",
    "bump",
    "can_transition",
    "check_version",
    "ensure_mutable",
    "ensure_transition",
]


TRANSITIONS: Dict[ViewingStatus, FrozenSet[ViewingStatus]] = {
    ViewingStatus.SCHEDULED: frozenset({ViewingStatus.CONFIRMED, ViewingStatus.CANCELLED}),
    ViewingStatus.CONFIRMED: frozenset(
        {ViewingStatus.IN_PROGRESS, ViewingStatus.CANCELLED, ViewingStatus.NO_SHOW}
    ),
    ViewingStatus.IN_PROGRESS: frozenset({ViewingStatus.COMPLETED, ViewingStatus.CANCELLED}),
    ViewingStatus.COMPLETED: frozenset(),
    ViewingStatus.CANCELLED: frozenset(),
    ViewingStatus.NO_SHOW: frozenset(),
}


def can_transition(current: ViewingStatus, target: ViewingStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: ViewingStatus, target: ViewingStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move viewing from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )


def check_version(appointment: Appointment, expected_version: int) -> None:
    if appointment.version != expected_version:
        raise StaleVersion(
            f"Appointment {appointment.id} is at version {appointment.version}, not {expected_version}",
            details={"current_version": appointment.version, "expected_version": expected_version},
        )


def ensure_mutable(appointment: Appointment) -> None:
    """Terminal appointments keep their time, duration and agent forever."""
    if appointment.is_terminal:
        raise InvalidTransition(
            f"Appointment {appointment.id} is {appointment.status.value} and can no longer change",
            details={"status": appointment.status.value},
        )


def bump(appointment: Appointment, now: dt.datetime, **changes) -> Appointment:
    """Copy with the given changes, the next version and a fresh timestamp."""
    changes.update(version=appointment.version + 1, updated_at=now)
    return appointment.model_copy(update=changes)


def apply_transition(
    appointment: Appointment,
    target: ViewingStatus,
    *,
    expected_version: int,
    now: dt.datetime,
    reason: Optional[str] = None,
) -> Appointment:
    """Validate and apply one status change, returning the new appointment."""
    check_version(appointment, expected_version)
    ensure_transition(appointment.status, target)
    if target is ViewingStatus.NO_SHOW and now < appointment.scheduled_start:
        # no-show is only recorded once the scheduled time has passed
        raise InvalidTransition(
            "A no-show can only be recorded after the scheduled start",
            details={"scheduled_start": appointment.scheduled_start.isoformat()},
        )
    changes: Dict[str, object] = {"status": target}
    if target is ViewingStatus.CANCELLED:
        changes["cancellation_reason"] = reason
    return bump(appointment, now, **changes)

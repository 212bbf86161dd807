"""Booking engine: validates and commits new viewings."""

from __future__ import annotations

import datetime as dt
from typing import Callable, Optional, Sequence

from viewingdesk.core.conflicts import contains, find_conflicts
from viewingdesk.core.errors import SlotUnavailable, ValidationError
from viewingdesk.core.locks import LockManager, agent_lock
from viewingdesk.core.models import Appointment, AvailabilityWindow, BookingRequest, Interval, utcnow
from viewingdesk.core.settings import BookingPolicy
from viewingdesk.data.appointment_store import AppointmentStore
from viewingdesk.data.directory import AgentDirectory
from viewingdesk.services.availability import AvailabilityStore, is_aligned
from viewingdesk.services.events import EventPublisher
from viewingdesk.utils.logging import get_logger


Clock = Callable[[], dt.datetime]


class BookingEngine:
    """Turns a ``BookingRequest`` into a committed ``Appointment``.

    Input is validated before anything is locked. The conflict and
    availability checks then run again against live state while holding the
    agent's lock, and the appointment is stored before the lock is released,
    so a competing request for an overlapping interval always sees it.
    """

    def __init__(
        self,
        store: AppointmentStore,
        availability: AvailabilityStore,
        directory: AgentDirectory,
        locks: LockManager,
        *,
        events: Optional[EventPublisher] = None,
        lock_timeout: float = 5.0,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._availability = availability
        self._directory = directory
        self._locks = locks
        self._events = events or EventPublisher(None)
        self._lock_timeout = lock_timeout
        self._clock = clock
        self.logger = get_logger("BookingEngine")

    @property
    def policy(self) -> BookingPolicy:
        return self._availability.policy

    def now(self) -> dt.datetime:
        return self._clock()

    def validate_timing(self, start: dt.datetime, duration_minutes: int, now: dt.datetime) -> Interval:
        """Lead time and duration rules shared by booking and rescheduling."""
        policy = self.policy
        if start.tzinfo is None or start.utcoffset() is None:
            raise ValidationError("scheduled start must be timezone-aware", field="scheduled_start")
        earliest = now + dt.timedelta(minutes=policy.min_lead_time_minutes)
        if start <= now or start < earliest:
            raise ValidationError(
                f"viewings must be booked at least {policy.min_lead_time_minutes} minutes ahead",
                field="scheduled_start",
                details={"earliest_start": earliest.isoformat()},
            )
        if not policy.min_duration_minutes <= duration_minutes <= policy.max_duration_minutes:
            raise ValidationError(
                f"duration must be between {policy.min_duration_minutes} and "
                f"{policy.max_duration_minutes} minutes",
                field="duration_minutes",
            )
        return Interval.from_duration(start, duration_minutes)

    def validate_request(self, request: BookingRequest, now: dt.datetime) -> Interval:
        interval = self.validate_timing(request.scheduled_start, request.duration_minutes, now)
        if request.attendee_count < 1:
            raise ValidationError("at least one attendee is required", field="attendee_count")
        if request.attendee_count > self.policy.max_attendees:
            raise ValidationError(
                f"at most {self.policy.max_attendees} attendees per viewing", field="attendee_count"
            )
        return interval

    def check_slot(
        self,
        agent_id: str,
        interval: Interval,
        windows: Sequence[AvailabilityWindow],
        *,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Re-check the interval against live state; caller holds the agent lock."""
        if self.policy.require_slot_alignment:
            granularity = dt.timedelta(minutes=self.policy.default_granularity_minutes)
            if not is_aligned(interval.start, granularity, self._availability.agent_timezone(windows)):
                raise ValidationError(
                    f"start must fall on the {self.policy.default_granularity_minutes}-minute slot grid",
                    field="scheduled_start",
                )
        conflicts = find_conflicts(
            interval, self._store.for_agent(agent_id, active_only=True), exclude_id=exclude_id
        )
        if conflicts:
            raise SlotUnavailable(
                "Requested time overlaps an existing viewing",
                details={"conflicts": [item.id for item in conflicts]},
            )
        free = self._availability.free_intervals(
            agent_id, windows, interval, exclude_appointment_id=exclude_id
        )
        if not any(contains(piece, interval) for piece in free):
            raise SlotUnavailable(
                "Requested time is outside the agent's availability",
                details={"start": interval.start.isoformat(), "end": interval.end.isoformat()},
            )

    async def book(self, request: BookingRequest) -> Appointment:
        now = self.now()
        interval = self.validate_request(request, now)
        if not await self._directory.property_exists(request.property_id):
            raise ValidationError(f"Unknown property {request.property_id}", field="property_id")
        windows = await self._directory.get_agent_working_hours(request.agent_id)

        async with agent_lock(self._locks, request.agent_id, timeout=self._lock_timeout):
            try:
                self.check_slot(request.agent_id, interval, windows)
            except SlotUnavailable as exc:
                self.logger.info(
                    "Rejected booking for agent %s at %s: %s",
                    request.agent_id,
                    interval.start.isoformat(),
                    exc.message,
                )
                raise
            stamp = self.now()
            appointment = Appointment(
                agent_id=request.agent_id,
                property_id=request.property_id,
                client_contact=request.client_contact,
                scheduled_start=request.scheduled_start,
                duration_minutes=request.duration_minutes,
                viewing_type=request.viewing_type,
                attendee_count=request.attendee_count,
                notes=request.notes,
                created_at=stamp,
                updated_at=stamp,
            )
            await self._store.save(appointment)
            await self._events.status_changed(appointment, previous=None)

        self.logger.info(
            "Booked viewing %s for agent %s at %s (%d min)",
            appointment.id,
            appointment.agent_id,
            appointment.scheduled_start.isoformat(),
            appointment.duration_minutes,
        )
        return appointment

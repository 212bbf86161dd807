"""Moves a live viewing to a new time without changing its identity."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from viewingdesk.core import lifecycle as rules
from viewingdesk.core.errors import SchedulingError
from viewingdesk.core.locks import LockManager, agent_lock
from viewingdesk.core.models import Appointment
from viewingdesk.data.appointment_store import AppointmentStore
from viewingdesk.data.directory import AgentDirectory
from viewingdesk.services.booking import BookingEngine
from viewingdesk.services.events import EventPublisher
from viewingdesk.utils.logging import get_logger


class ReschedulingEngine:
    """Reschedules in place: same id and history, new start and duration.

    Every check runs against the stored copy while the agent lock is held and
    the moved copy replaces it in one save, so there is never a moment with
    zero or two live bookings for the viewing. Any failure leaves the
    original untouched.
    """

    def __init__(
        self,
        store: AppointmentStore,
        booking: BookingEngine,
        directory: AgentDirectory,
        locks: LockManager,
        *,
        events: Optional[EventPublisher] = None,
        lock_timeout: float = 5.0,
    ) -> None:
        self._store = store
        self._booking = booking
        self._directory = directory
        self._locks = locks
        self._events = events or EventPublisher(None)
        self._lock_timeout = lock_timeout
        self.logger = get_logger("ReschedulingEngine")

    async def reschedule(
        self,
        appointment_id: str,
        expected_version: int,
        new_start: dt.datetime,
        new_duration: Optional[int] = None,
    ) -> Appointment:
        original = self._store.require(appointment_id)
        agent_id = original.agent_id
        windows = await self._directory.get_agent_working_hours(agent_id)

        async with agent_lock(self._locks, agent_id, timeout=self._lock_timeout):
            current = self._store.require(appointment_id)
            try:
                rules.check_version(current, expected_version)
                rules.ensure_mutable(current)
                now = self._booking.now()
                duration = new_duration if new_duration is not None else current.duration_minutes
                interval = self._booking.validate_timing(new_start, duration, now)
                self._booking.check_slot(agent_id, interval, windows, exclude_id=current.id)
            except SchedulingError as exc:
                self.logger.info("Rejected reschedule of %s: %s", appointment_id, exc.message)
                raise
            moved = rules.bump(current, now, scheduled_start=new_start, duration_minutes=duration)
            await self._store.save(moved)
            await self._events.rescheduled(current, moved)

        self.logger.info(
            "Rescheduled viewing %s from %s to %s (v%d)",
            appointment_id,
            current.scheduled_start.isoformat(),
            moved.scheduled_start.isoformat(),
            moved.version,
        )
        return moved

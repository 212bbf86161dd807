"""Applies viewing status transitions against the store."""

from __future__ import annotations

from typing import Optional

from viewingdesk.core import lifecycle as rules
from viewingdesk.core.errors import InvalidTransition, ValidationError
from viewingdesk.core.locks import LockManager, agent_lock
from viewingdesk.core.models import Appointment, ViewingStatus, utcnow
from viewingdesk.data.appointment_store import AppointmentStore
from viewingdesk.services.booking import Clock
from viewingdesk.services.events import EventPublisher
from viewingdesk.utils.logging import get_logger


class ViewingLifecycle:
    """Status changes for committed viewings, version-checked and serialized per agent."""

    def __init__(
        self,
        store: AppointmentStore,
        locks: LockManager,
        *,
        events: Optional[EventPublisher] = None,
        lock_timeout: float = 5.0,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._locks = locks
        self._events = events or EventPublisher(None)
        self._lock_timeout = lock_timeout
        self._clock = clock
        self.logger = get_logger("ViewingLifecycle")

    async def transition(
        self,
        appointment_id: str,
        expected_version: int,
        target: ViewingStatus,
        *,
        reason: Optional[str] = None,
    ) -> Appointment:
        # agent_id never changes, so the unlocked read is enough to pick the lock
        agent_id = self._store.require(appointment_id).agent_id
        async with agent_lock(self._locks, agent_id, timeout=self._lock_timeout):
            current = self._store.require(appointment_id)
            try:
                updated = rules.apply_transition(
                    current, target, expected_version=expected_version, now=self._clock(), reason=reason
                )
            except InvalidTransition as exc:
                self.logger.info("Rejected transition of %s: %s", appointment_id, exc.message)
                raise
            await self._store.save(updated)
            await self._events.status_changed(updated, previous=current.status)

        self.logger.info(
            "Viewing %s moved %s -> %s (v%d)",
            appointment_id,
            current.status.value,
            updated.status.value,
            updated.version,
        )
        return updated

    async def confirm(self, appointment_id: str, expected_version: int) -> Appointment:
        return await self.transition(appointment_id, expected_version, ViewingStatus.CONFIRMED)

    async def start(self, appointment_id: str, expected_version: int) -> Appointment:
        return await self.transition(appointment_id, expected_version, ViewingStatus.IN_PROGRESS)

    async def complete(self, appointment_id: str, expected_version: int) -> Appointment:
        return await self.transition(appointment_id, expected_version, ViewingStatus.COMPLETED)

    async def cancel(self, appointment_id: str, expected_version: int, reason: Optional[str] = None) -> Appointment:
        return await self.transition(appointment_id, expected_version, ViewingStatus.CANCELLED, reason=reason)

    async def mark_no_show(self, appointment_id: str, expected_version: int) -> Appointment:
        return await self.transition(appointment_id, expected_version, ViewingStatus.NO_SHOW)

    async def record_feedback(
        self,
        appointment_id: str,
        expected_version: int,
        rating: int,
        feedback: Optional[str] = None,
    ) -> Appointment:
        """Attach a 1-5 rating and optional comments to a completed viewing."""
        if not 1 <= rating <= 5:
            raise ValidationError("rating must be between 1 and 5", field="rating")
        agent_id = self._store.require(appointment_id).agent_id
        async with agent_lock(self._locks, agent_id, timeout=self._lock_timeout):
            current = self._store.require(appointment_id)
            rules.check_version(current, expected_version)
            if current.status is not ViewingStatus.COMPLETED:
                raise InvalidTransition(
                    "Feedback can only be recorded for completed viewings",
                    details={"status": current.status.value},
                )
            updated = rules.bump(current, self._clock(), rating=rating, feedback=feedback)
            await self._store.save(updated)

        self.logger.info("Recorded %d-star feedback for viewing %s", rating, appointment_id)
        return updated

"""Publishes appointment state changes for notification consumers."""

from __future__ import annotations

from typing import Optional

from viewingdesk.core.message_bus import EventBus
from viewingdesk.core.models import Appointment, EventEnvelope, EventType, StatusChange, ViewingStatus
from viewingdesk.utils.logging import get_logger


class EventPublisher:
    """Fire-and-forget emission of committed changes.

    Called after the store has committed, so a publishing failure is logged and
    never rolls the change back; redelivery is the consumer's concern.
    """

    def __init__(self, bus: Optional[EventBus]) -> None:
        self._bus = bus
        self.logger = get_logger("EventPublisher")

    async def _emit(self, envelope: EventEnvelope) -> None:
        if self._bus is None:
            return
        try:
            await self._bus.publish(envelope)
        except Exception:
            self.logger.warning(
                "Failed to publish %s for agent %s", envelope.type.value, envelope.agent_id, exc_info=True
            )

    async def status_changed(self, appointment: Appointment, previous: Optional[ViewingStatus]) -> None:
        change = StatusChange(
            appointment_id=appointment.id,
            agent_id=appointment.agent_id,
            previous_status=previous,
            new_status=appointment.status,
            version=appointment.version,
            timestamp=appointment.updated_at,
        )
        await self._emit(
            EventEnvelope(
                type=EventType.STATUS_CHANGED,
                agent_id=appointment.agent_id,
                payload=change.model_dump(mode="json"),
            )
        )

    async def rescheduled(self, before: Appointment, after: Appointment) -> None:
        await self._emit(
            EventEnvelope(
                type=EventType.RESCHEDULED,
                agent_id=after.agent_id,
                payload={
                    "appointment_id": after.id,
                    "agent_id": after.agent_id,
                    "version": after.version,
                    "previous_start": before.scheduled_start.isoformat(),
                    "previous_duration_minutes": before.duration_minutes,
                    "new_start": after.scheduled_start.isoformat(),
                    "new_duration_minutes": after.duration_minutes,
                    "timestamp": after.updated_at.isoformat(),
                },
            )
        )

"""Audit agent persisting every appointment event."""

from __future__ import annotations

from viewingdesk.agents.base import BaseAgent
from viewingdesk.core.message_bus import EventBus, is_closed_sentinel
from viewingdesk.core.models import EventType
from viewingdesk.services.audit_logger import AuditLogger


class AuditAgent(BaseAgent):
    """Consumes status-change and reschedule events into the audit trail."""

    def __init__(self, *, message_bus: EventBus, audit_logger: AuditLogger) -> None:
        super().__init__(message_bus=message_bus)
        self._audit = audit_logger

    async def run(self) -> None:
        stream = self.message_bus.subscribe([EventType.STATUS_CHANGED, EventType.RESCHEDULED])
        self.mark_ready()
        async for envelope in stream:
            if is_closed_sentinel(envelope) or self.should_stop():
                break
            try:
                await self._audit.log(
                    event=envelope.type.value,
                    agent_id=envelope.agent_id,
                    payload=envelope.payload,
                )
            except OSError:
                self.logger.error("Failed to persist audit entry %s", envelope.id, exc_info=True)

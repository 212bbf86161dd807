"""Read-only projections over committed appointments."""

from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from viewingdesk.core.models import Appointment, ViewingStatus
from viewingdesk.data.appointment_store import AppointmentStore


class ViewingStats(BaseModel):
    total: int
    by_status: Dict[ViewingStatus, int]
    on_day: int


class QueryFacade:
    """Snapshot reads; returned appointments are frozen and cannot be mutated."""

    def __init__(self, store: AppointmentStore, *, timezone: str = "UTC") -> None:
        self._store = store
        self._tz = ZoneInfo(timezone)

    def _scope(self, agent_id: Optional[str]) -> List[Appointment]:
        if agent_id is None:
            items = self._store.snapshot()
        else:
            items = self._store.for_agent(agent_id)
        return sorted(items, key=lambda item: (item.scheduled_start, item.id))

    def _local_day(self, appointment: Appointment, tz: Optional[ZoneInfo]) -> dt.date:
        return appointment.scheduled_start.astimezone(tz or self._tz).date()

    def get_by_id(self, appointment_id: str) -> Appointment:
        return self._store.require(appointment_id)

    def list_by_agent_and_date(
        self, agent_id: str, day: dt.date, *, tz: Optional[ZoneInfo] = None
    ) -> List[Appointment]:
        return [item for item in self._scope(agent_id) if self._local_day(item, tz) == day]

    def list_by_status(self, status: ViewingStatus, *, agent_id: Optional[str] = None) -> List[Appointment]:
        return [item for item in self._scope(agent_id) if item.status is status]

    def find(
        self,
        *,
        agent_id: Optional[str] = None,
        status: Optional[ViewingStatus] = None,
        day: Optional[dt.date] = None,
        text: Optional[str] = None,
    ) -> List[Appointment]:
        """Combine the filters above; every given filter must match."""
        items = self.search(text, agent_id=agent_id) if text else self._scope(agent_id)
        if status is not None:
            items = [item for item in items if item.status is status]
        if day is not None:
            items = [item for item in items if self._local_day(item, None) == day]
        return items

    def search(self, text: str, *, agent_id: Optional[str] = None) -> List[Appointment]:
        """Case-insensitive match on client name, client email or property id."""
        needle = text.strip().lower()
        if not needle:
            return self._scope(agent_id)
        return [
            item
            for item in self._scope(agent_id)
            if needle in item.client_contact.name.lower()
            or needle in str(item.client_contact.email).lower()
            or needle in item.property_id.lower()
        ]

    def stats(self, *, agent_id: Optional[str] = None, today: Optional[dt.date] = None) -> ViewingStats:
        items = self._scope(agent_id)
        counts = Counter(item.status for item in items)
        day = today or dt.datetime.now(self._tz).date()
        return ViewingStats(
            total=len(items),
            by_status={status: counts.get(status, 0) for status in ViewingStatus},
            on_day=sum(1 for item in items if self._local_day(item, None) == day),
        )

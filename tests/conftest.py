"""Shared fixtures: a fixed clock, a two-agent directory and an in-memory runtime."""

from __future__ import annotations

import datetime as dt
from typing import Optional

import pytest

from viewingdesk.core.models import (
    Appointment,
    AvailabilityWindow,
    BookingRequest,
    ClientContact,
    ViewingStatus,
    ViewingType,
)
from viewingdesk.core.runtime import SchedulerRuntime
from viewingdesk.data.appointment_store import AppointmentStore
from viewingdesk.data.directory import StaticDirectory

UTC = dt.timezone.utc
AGENT = "agent-1"
OTHER_AGENT = "agent-2"
PROPERTY = "prop-1"

# Monday
NOW = dt.datetime(2026, 10, 19, 6, 0, tzinfo=UTC)


def at(hour: int, minute: int = 0, *, day: int = 19) -> dt.datetime:
    return dt.datetime(2026, 10, day, hour, minute, tzinfo=UTC)


class FixedClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


def weekday_windows(agent_id: str, start: str = "09:00", end: str = "17:00", timezone: str = "UTC"):
    return [
        AvailabilityWindow(
            agent_id=agent_id,
            day_of_week=day,
            start_time=dt.time.fromisoformat(start),
            end_time=dt.time.fromisoformat(end),
            timezone=timezone,
        )
        for day in range(5)
    ]


def make_request(
    start: dt.datetime,
    duration: int = 60,
    *,
    agent_id: str = AGENT,
    property_id: str = PROPERTY,
    **overrides,
) -> BookingRequest:
    data = dict(
        agent_id=agent_id,
        property_id=property_id,
        scheduled_start=start,
        duration_minutes=duration,
        viewing_type=ViewingType.IN_PERSON,
        attendee_count=2,
        client_contact=ClientContact(name="Dana Client", email="dana@example.com", phone="+44 20 7946 0000"),
    )
    data.update(overrides)
    return BookingRequest(**data)


def make_appointment(
    start: dt.datetime,
    duration: int = 60,
    *,
    status: ViewingStatus = ViewingStatus.SCHEDULED,
    agent_id: str = AGENT,
    appointment_id: Optional[str] = None,
    version: int = 1,
) -> Appointment:
    extra = {"id": appointment_id} if appointment_id else {}
    return Appointment(
        agent_id=agent_id,
        property_id=PROPERTY,
        client_contact=ClientContact(name="Dana Client", email="dana@example.com"),
        scheduled_start=start,
        duration_minutes=duration,
        status=status,
        version=version,
        **extra,
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory(
        {
            AGENT: weekday_windows(AGENT),
            OTHER_AGENT: weekday_windows(OTHER_AGENT, "10:00", "14:00"),
        },
        properties=[PROPERTY, "prop-2"],
    )


@pytest.fixture
def store() -> AppointmentStore:
    return AppointmentStore()


@pytest.fixture
def runtime(store, directory, clock) -> SchedulerRuntime:
    return SchedulerRuntime(store=store, directory=directory, clock=clock)

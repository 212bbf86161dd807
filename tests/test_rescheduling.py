from __future__ import annotations

import asyncio

import pytest

from viewingdesk.core.errors import InvalidTransition, SlotUnavailable, StaleVersion, ValidationError
from viewingdesk.core.models import EventType, ViewingStatus

from conftest import AGENT, at, make_request


@pytest.mark.asyncio
async def test_reschedule_keeps_identity(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    confirmed = await runtime.lifecycle.confirm(booked.id, 1)

    moved = await runtime.rescheduling.reschedule(booked.id, 2, at(14), 90)

    assert moved.id == booked.id
    assert moved.version == 3
    assert moved.status is ViewingStatus.CONFIRMED
    assert (moved.scheduled_start, moved.duration_minutes) == (at(14), 90)
    assert moved.created_at == confirmed.created_at
    assert runtime.store.for_agent(AGENT) == [moved]


@pytest.mark.asyncio
async def test_reschedule_may_overlap_its_own_old_interval(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    moved = await runtime.rescheduling.reschedule(booked.id, 1, at(10, 30))
    assert moved.duration_minutes == 60
    assert moved.scheduled_end == at(11, 30)


@pytest.mark.asyncio
async def test_failed_reschedule_leaves_original_untouched(runtime):
    a = await runtime.booking.book(make_request(at(10), 60))
    a = await runtime.lifecycle.confirm(a.id, 1)
    await runtime.booking.book(make_request(at(11), 30))
    before = runtime.store.require(a.id).model_dump_json()

    with pytest.raises(SlotUnavailable):
        await runtime.rescheduling.reschedule(a.id, a.version, at(10, 30))
    with pytest.raises(ValidationError):
        await runtime.rescheduling.reschedule(a.id, a.version, at(13), 5)
    with pytest.raises(SlotUnavailable):
        await runtime.rescheduling.reschedule(a.id, a.version, at(16, 30))

    assert runtime.store.require(a.id).model_dump_json() == before
    slots = await runtime.availability.compute_free_slots(AGENT, at(10), at(11), 60)
    assert list(slots) == []


@pytest.mark.asyncio
async def test_terminal_viewings_cannot_move(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    cancelled = await runtime.lifecycle.cancel(booked.id, 1)
    with pytest.raises(InvalidTransition):
        await runtime.rescheduling.reschedule(booked.id, cancelled.version, at(14))


@pytest.mark.asyncio
async def test_reschedule_against_stale_version(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    results = await asyncio.gather(
        runtime.rescheduling.reschedule(booked.id, 1, at(13)),
        runtime.lifecycle.cancel(booked.id, 1),
        return_exceptions=True,
    )
    assert sum(isinstance(item, StaleVersion) for item in results) == 1
    assert runtime.store.require(booked.id).version == 2


@pytest.mark.asyncio
async def test_reschedule_publishes_event(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    stream = runtime.message_bus.subscribe(EventType.RESCHEDULED)
    await runtime.rescheduling.reschedule(booked.id, 1, at(15), 30)

    envelope = await asyncio.wait_for(stream.__anext__(), timeout=1)
    assert envelope.payload["appointment_id"] == booked.id
    assert envelope.payload["previous_duration_minutes"] == 60
    assert envelope.payload["new_duration_minutes"] == 30
    assert envelope.payload["version"] == 2
    await stream.aclose()

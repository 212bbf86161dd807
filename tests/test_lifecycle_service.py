from __future__ import annotations

import asyncio

import pytest

from viewingdesk.core.errors import InvalidTransition, NotFound, StaleVersion, ValidationError
from viewingdesk.core.models import EventType, ViewingStatus

from conftest import AGENT, at, make_request


@pytest.mark.asyncio
async def test_full_happy_path(runtime, clock):
    booked = await runtime.booking.book(make_request(at(10)))
    confirmed = await runtime.lifecycle.confirm(booked.id, 1)
    clock.now = at(10, 2)
    started = await runtime.lifecycle.start(confirmed.id, 2)
    clock.now = at(11)
    completed = await runtime.lifecycle.complete(started.id, 3)

    assert [confirmed.status, started.status, completed.status] == [
        ViewingStatus.CONFIRMED,
        ViewingStatus.IN_PROGRESS,
        ViewingStatus.COMPLETED,
    ]
    assert completed.version == 4
    assert completed.updated_at == at(11)
    assert runtime.queries.get_by_id(booked.id) == completed


@pytest.mark.asyncio
async def test_cancelled_viewing_cannot_be_confirmed(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    cancelled = await runtime.lifecycle.cancel(booked.id, 1, reason="sold")
    assert cancelled.cancellation_reason == "sold"

    with pytest.raises(InvalidTransition):
        await runtime.lifecycle.confirm(booked.id, cancelled.version)
    assert runtime.store.require(booked.id) == cancelled


@pytest.mark.asyncio
async def test_stale_version_is_rejected(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    await runtime.lifecycle.confirm(booked.id, 1)
    with pytest.raises(StaleVersion):
        await runtime.lifecycle.cancel(booked.id, 1)


@pytest.mark.asyncio
async def test_racing_transitions_apply_exactly_one(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    results = await asyncio.gather(
        runtime.lifecycle.confirm(booked.id, 1),
        runtime.lifecycle.cancel(booked.id, 1),
        return_exceptions=True,
    )
    winners = [item for item in results if not isinstance(item, Exception)]
    losers = [item for item in results if isinstance(item, Exception)]

    assert len(winners) == 1
    assert isinstance(losers[0], StaleVersion)
    assert runtime.store.require(booked.id).version == 2


@pytest.mark.asyncio
async def test_no_show_only_after_start(runtime, clock):
    booked = await runtime.booking.book(make_request(at(10)))
    await runtime.lifecycle.confirm(booked.id, 1)
    with pytest.raises(InvalidTransition):
        await runtime.lifecycle.mark_no_show(booked.id, 2)

    clock.now = at(10, 20)
    no_show = await runtime.lifecycle.mark_no_show(booked.id, 2)
    assert no_show.status is ViewingStatus.NO_SHOW


@pytest.mark.asyncio
async def test_unknown_appointment(runtime):
    with pytest.raises(NotFound):
        await runtime.lifecycle.confirm("missing", 1)


@pytest.mark.asyncio
async def test_transitions_publish_status_changes(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    stream = runtime.message_bus.subscribe(EventType.STATUS_CHANGED, agent_id=AGENT)
    await runtime.lifecycle.confirm(booked.id, 1)
    await runtime.lifecycle.cancel(booked.id, 2, reason="weather")

    first = await asyncio.wait_for(stream.__anext__(), timeout=1)
    second = await asyncio.wait_for(stream.__anext__(), timeout=1)
    assert (first.payload["previous_status"], first.payload["new_status"]) == ("scheduled", "confirmed")
    assert (second.payload["previous_status"], second.payload["new_status"]) == ("confirmed", "cancelled")
    assert second.payload["version"] == 3
    await stream.aclose()


@pytest.mark.asyncio
async def test_feedback_for_completed_viewings(runtime, clock):
    booked = await runtime.booking.book(make_request(at(10)))
    with pytest.raises(InvalidTransition):
        await runtime.lifecycle.record_feedback(booked.id, 1, 4)

    await runtime.lifecycle.confirm(booked.id, 1)
    clock.now = at(10)
    await runtime.lifecycle.start(booked.id, 2)
    await runtime.lifecycle.complete(booked.id, 3)

    with pytest.raises(ValidationError):
        await runtime.lifecycle.record_feedback(booked.id, 4, 6)
    rated = await runtime.lifecycle.record_feedback(booked.id, 4, 5, "great light")
    assert (rated.rating, rated.feedback, rated.version) == (5, "great light", 5)
    assert rated.status is ViewingStatus.COMPLETED


@pytest.mark.asyncio
async def test_start_requires_confirmation_first(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    with pytest.raises(InvalidTransition):
        await runtime.lifecycle.start(booked.id, 1)
    await runtime.lifecycle.confirm(booked.id, 1)
    started = await runtime.lifecycle.start(booked.id, 2)
    assert started.status is ViewingStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_completed_viewing_is_final(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    await runtime.lifecycle.confirm(booked.id, 1)
    await runtime.lifecycle.start(booked.id, 2)
    completed = await runtime.lifecycle.complete(booked.id, 3)

    for target in ViewingStatus:
        with pytest.raises(InvalidTransition):
            await runtime.lifecycle.transition(booked.id, completed.version, target)
    assert runtime.store.require(booked.id) == completed

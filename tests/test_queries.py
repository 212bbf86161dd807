from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError as ModelValidationError

from viewingdesk.core.models import ClientContact, ViewingStatus

from conftest import AGENT, OTHER_AGENT, at, make_request


async def _seed(runtime):
    first = await runtime.booking.book(make_request(at(10)))
    second = await runtime.booking.book(
        make_request(
            at(9),
            30,
            property_id="prop-2",
            client_contact=ClientContact(name="Rui Alves", email="rui@example.org"),
        )
    )
    third = await runtime.booking.book(make_request(at(10, day=20)))
    other = await runtime.booking.book(make_request(at(11), agent_id=OTHER_AGENT))
    await runtime.lifecycle.cancel(first.id, 1)
    return first, second, third, other


@pytest.mark.asyncio
async def test_list_by_agent_and_date_is_sorted(runtime):
    first, second, third, _ = await _seed(runtime)
    monday = runtime.queries.list_by_agent_and_date(AGENT, dt.date(2026, 10, 19))
    assert [item.id for item in monday] == [second.id, first.id]
    assert [item.id for item in runtime.queries.list_by_agent_and_date(AGENT, dt.date(2026, 10, 20))] == [third.id]


@pytest.mark.asyncio
async def test_local_date_follows_requested_timezone(runtime):
    booked = await runtime.booking.book(make_request(at(16, 30), 30))
    tokyo = ZoneInfo("Asia/Tokyo")
    # 16:30 UTC is already 01:30 the next day in Tokyo
    assert runtime.queries.list_by_agent_and_date(AGENT, dt.date(2026, 10, 19), tz=tokyo) == []
    assert runtime.queries.list_by_agent_and_date(AGENT, dt.date(2026, 10, 20), tz=tokyo) == [booked]


@pytest.mark.asyncio
async def test_list_by_status(runtime):
    first, second, third, other = await _seed(runtime)
    assert [item.id for item in runtime.queries.list_by_status(ViewingStatus.CANCELLED)] == [first.id]
    scheduled = runtime.queries.list_by_status(ViewingStatus.SCHEDULED, agent_id=AGENT)
    assert [item.id for item in scheduled] == [second.id, third.id]
    assert len(runtime.queries.list_by_status(ViewingStatus.SCHEDULED)) == 3


@pytest.mark.asyncio
async def test_search_and_find(runtime):
    _, second, _, other = await _seed(runtime)
    assert runtime.queries.search("RUI") == [second]
    assert runtime.queries.search("example.org") == [second]
    assert runtime.queries.search("prop-2") == [second]
    assert runtime.queries.find(agent_id=OTHER_AGENT, status=ViewingStatus.SCHEDULED) == [other]
    assert runtime.queries.find(text="dana", day=dt.date(2026, 10, 19), status=ViewingStatus.SCHEDULED) == [other]


@pytest.mark.asyncio
async def test_stats(runtime):
    await _seed(runtime)
    stats = runtime.queries.stats(today=dt.date(2026, 10, 19))
    assert stats.total == 4
    assert stats.by_status[ViewingStatus.SCHEDULED] == 3
    assert stats.by_status[ViewingStatus.CANCELLED] == 1
    assert stats.by_status[ViewingStatus.COMPLETED] == 0
    assert stats.on_day == 3
    assert runtime.queries.stats(agent_id=OTHER_AGENT, today=dt.date(2026, 10, 19)).total == 1


@pytest.mark.asyncio
async def test_results_cannot_be_mutated(runtime):
    booked = await runtime.booking.book(make_request(at(10)))
    fetched = runtime.queries.get_by_id(booked.id)
    with pytest.raises(ModelValidationError):
        fetched.status = ViewingStatus.COMPLETED
    assert runtime.queries.get_by_id(booked.id).status is ViewingStatus.SCHEDULED

"""Simple in-memory asynchronous message bus."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, FrozenSet, Iterable, Optional, Protocol, Set, Union

from .models import EventEnvelope, EventType
from viewingdesk.utils.logging import get_logger


EventTypes = Union[EventType, Iterable[EventType]]


class EventBus(Protocol):
    async def publish(self, envelope: EventEnvelope) -> None: ...

    def subscribe(
        self, event_types: EventTypes, *, agent_id: Optional[str] = None, max_queue: int = 100
    ) -> AsyncIterator[EventEnvelope]: ...

    async def close(self) -> None: ...


def as_event_types(event_types: EventTypes) -> FrozenSet[EventType]:
    if isinstance(event_types, EventType):
        return frozenset({event_types})
    return frozenset(event_types)


def closed_sentinel(event_type: EventType) -> EventEnvelope:
    return EventEnvelope(
        type=event_type,
        agent_id="*",
        payload={"message": "MessageBus closed", "__bus_closed__": True},
    )


def is_closed_sentinel(envelope: EventEnvelope) -> bool:
    return bool((envelope.payload or {}).get("__bus_closed__"))


@dataclass(slots=True, eq=False)
class _Subscription:
    queue: "asyncio.Queue[EventEnvelope]"
    types: FrozenSet[EventType]
    agent_filter: Optional[str]


class MessageBus:
    """Pub/sub bus with optional per-agent filtering.

    Subscriptions are registered as soon as ``subscribe`` returns, so events
    published afterwards are queued even before the consumer starts iterating.
    """

    def __init__(self) -> None:
        self._subscriptions: Set[_Subscription] = set()
        self._closed = False
        self.logger = get_logger("MessageBus")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, envelope: EventEnvelope) -> None:
        """Publish an event to subscribers."""
        if self._closed:
            raise RuntimeError("MessageBus is closed")

        for subscription in list(self._subscriptions):
            if envelope.type not in subscription.types:
                continue
            if subscription.agent_filter and subscription.agent_filter != envelope.agent_id:
                continue
            self._offer(subscription, envelope)

    def _offer(self, subscription: _Subscription, envelope: EventEnvelope) -> None:
        try:
            subscription.queue.put_nowait(envelope)
        except asyncio.QueueFull:
            # slow consumer: the oldest undelivered event is dropped
            dropped = subscription.queue.get_nowait()
            self.logger.warning("Subscriber queue full; dropped event %s (%s)", dropped.id, dropped.type.value)
            subscription.queue.put_nowait(envelope)

    def subscribe(
        self,
        event_types: EventTypes,
        *,
        agent_id: Optional[str] = None,
        max_queue: int = 100,
    ) -> AsyncIterator[EventEnvelope]:
        """Subscribe to one or more event types, optionally for a single agent."""
        if self._closed:
            raise RuntimeError("MessageBus is closed")

        types = as_event_types(event_types)
        if not types:
            raise ValueError("subscribe needs at least one event type")

        queue: "asyncio.Queue[EventEnvelope]" = asyncio.Queue(max_queue)
        subscription = _Subscription(queue=queue, types=types, agent_filter=agent_id)
        self._subscriptions.add(subscription)
        return self._drain(subscription)

    async def _drain(self, subscription: _Subscription) -> AsyncIterator[EventEnvelope]:
        try:
            while True:
                envelope = await subscription.queue.get()
                yield envelope
        finally:
            self._subscriptions.discard(subscription)

    async def close(self) -> None:
        """Stop accepting new events and unblock subscribers."""
        self._closed = True
        subscriptions = list(self._subscriptions)
        self._subscriptions.clear()
        for subscription in subscriptions:
            self._offer(subscription, closed_sentinel(next(iter(subscription.types))))

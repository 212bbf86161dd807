"""Redis-backed message bus using Streams and consumer groups."""

from __future__ import annotations

import json
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from redis.exceptions import ResponseError

from .message_bus import EventTypes, as_event_types
from .models import EventEnvelope
from viewingdesk.utils.logging import get_logger


class RedisMessageBus:
    """Publishes appointment events to a stream other processes can consume.

    Each subscription owns a consumer group, so every subscriber sees every
    matching event at least once.
    """

    def __init__(self, url: str, *, stream: str = "viewingdesk.events", maxlen: int = 100_000) -> None:
        self._redis = Redis.from_url(url, decode_responses=True)
        self._stream = stream
        self._maxlen = maxlen
        self._closed = False
        self.logger = get_logger("RedisMessageBus")

    async def publish(self, envelope: EventEnvelope) -> None:
        if self._closed:
            raise RuntimeError("RedisMessageBus is closed")
        payload = json.dumps(envelope.model_dump(mode="json"))
        await self._redis.xadd(
            self._stream,
            {"event": payload, "type": envelope.type.value, "agent_id": envelope.agent_id},
            maxlen=self._maxlen,
            approximate=True,
        )

    async def _ensure_group(self, group: str) -> None:
        try:
            await self._redis.xgroup_create(self._stream, group, id="$", mkstream=True)
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
            return
        self.logger.info("Created consumer group %s on %s", group, self._stream)

    async def subscribe(
        self,
        event_types: EventTypes,
        *,
        agent_id: Optional[str] = None,
        max_queue: int = 100,
        group: Optional[str] = None,
    ) -> AsyncIterator[EventEnvelope]:
        types = as_event_types(event_types)
        if not types:
            raise ValueError("subscribe needs at least one event type")
        names = sorted(item.value for item in types)
        group = group or f"g:{'+'.join(names)}:{agent_id or '*'}"
        consumer = f"c:{id(self)}"
        await self._ensure_group(group)

        while not self._closed:
            res = await self._redis.xreadgroup(
                group, consumer, {self._stream: ">"}, count=max_queue, block=5000
            )
            if not res:
                continue
            _, entries = res[0]
            for entry_id, fields in entries:
                try:
                    raw = fields.get("event")
                    if not raw:
                        continue
                    envelope = EventEnvelope.model_validate_json(raw)
                    if envelope.type not in types:
                        continue
                    if agent_id and envelope.agent_id != agent_id:
                        continue
                    yield envelope
                finally:
                    await self._redis.xack(self._stream, group, entry_id)

    async def close(self) -> None:
        self._closed = True
        await self._redis.aclose()

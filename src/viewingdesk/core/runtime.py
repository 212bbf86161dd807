"""Runtime wiring for the scheduling services."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, List, Optional

from viewingdesk.core.locks import InMemoryLockManager, LockManager
from viewingdesk.core.message_bus import EventBus, MessageBus
from viewingdesk.core.models import utcnow
from viewingdesk.core.settings import BookingPolicy, SchedulerSettings
from viewingdesk.data.appointment_store import AppointmentStore
from viewingdesk.data.directory import AgentDirectory, HttpDirectory, StaticDirectory
from viewingdesk.services.audit_logger import AuditLogger
from viewingdesk.services.availability import AvailabilityStore
from viewingdesk.services.booking import BookingEngine, Clock
from viewingdesk.services.events import EventPublisher
from viewingdesk.services.lifecycle import ViewingLifecycle
from viewingdesk.services.queries import QueryFacade
from viewingdesk.services.rescheduling import ReschedulingEngine
from viewingdesk.utils.logging import get_logger

# Import agents only for type checking to avoid circular import
if TYPE_CHECKING:
    from viewingdesk.agents.base import BaseAgent


class SchedulerRuntime:
    """Owns one store, one lock manager and one event bus, and the services built on them."""

    def __init__(
        self,
        *,
        store: AppointmentStore,
        directory: AgentDirectory,
        locks: Optional[LockManager] = None,
        message_bus: Optional[EventBus] = None,
        policy: Optional[BookingPolicy] = None,
        timezone: str = "UTC",
        lock_timeout: float = 5.0,
        audit_logger: Optional[AuditLogger] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.logger = get_logger("SchedulerRuntime")
        self.store = store
        self.directory = directory
        self.locks = locks if locks is not None else InMemoryLockManager()
        self.message_bus = message_bus or MessageBus()
        self.events = EventPublisher(self.message_bus)
        self.availability = AvailabilityStore(store, directory, policy=policy, timezone=timezone)
        self.booking = BookingEngine(
            store,
            self.availability,
            directory,
            self.locks,
            events=self.events,
            lock_timeout=lock_timeout,
            clock=clock,
        )
        self.lifecycle = ViewingLifecycle(
            store, self.locks, events=self.events, lock_timeout=lock_timeout, clock=clock
        )
        self.rescheduling = ReschedulingEngine(
            store, self.booking, directory, self.locks, events=self.events, lock_timeout=lock_timeout
        )
        self.queries = QueryFacade(store, timezone=timezone)
        self.audit_logger = audit_logger
        self._agents: List["BaseAgent"] = []
        self._started = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: SchedulerSettings, *, audit: bool = True) -> "SchedulerRuntime":
        directory: AgentDirectory
        if settings.directory.path is not None:
            directory = StaticDirectory.from_file(settings.directory.path)
        else:
            directory = HttpDirectory(
                str(settings.directory.base_url),
                api_key=settings.directory.api_key,
                timeout=settings.directory.timeout_seconds,
            )
        message_bus: EventBus
        if settings.event_backend == "redis":
            from viewingdesk.core.message_bus_redis import RedisMessageBus

            message_bus = RedisMessageBus(settings.redis_url)
        else:
            message_bus = MessageBus()
        return cls(
            store=AppointmentStore(settings.store_path),
            directory=directory,
            message_bus=message_bus,
            policy=settings.policy,
            timezone=settings.timezone,
            lock_timeout=settings.lock_timeout_seconds,
            audit_logger=AuditLogger(settings.audit_log_path) if audit else None,
        )

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        async with self._lock:
            if self._started:
                return
            if self.audit_logger is not None:
                from viewingdesk.agents.audit import AuditAgent

                self._agents.append(AuditAgent(message_bus=self.message_bus, audit_logger=self.audit_logger))
            self.logger.info("Starting %d background agents", len(self._agents))
            for agent in self._agents:
                await agent.start()
                await agent.wait_ready()
            self._started = True

    async def stop(self) -> None:
        async with self._lock:
            if not self._started:
                return
            self.logger.info("Stopping scheduler runtime")
            await asyncio.gather(*(agent.stop() for agent in self._agents), return_exceptions=True)
            self._agents.clear()
            self._started = False

    async def close(self) -> None:
        """Stop agents and release the bus and directory connections."""
        await self.stop()
        await self.message_bus.close()
        if isinstance(self.directory, HttpDirectory):
            await self.directory.aclose()

    async def run_forever(self) -> None:
        """Convenience helper for long-running processes."""
        await self.start()
        self.logger.info("Scheduler is now running. Press Ctrl+C to exit.")
        try:
            while True:
                await asyncio.sleep(3600)
        except asyncio.CancelledError:
            raise
        except KeyboardInterrupt:
            self.logger.info("Received shutdown signal")
        finally:
            await self.close()

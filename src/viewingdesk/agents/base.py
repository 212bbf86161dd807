"""Common background consumer abstractions."""

from __future__ import annotations

import abc
import asyncio
from typing import Optional

from viewingdesk.core.message_bus import EventBus
from viewingdesk.utils.logging import get_logger


class BaseAgent(abc.ABC):
    """Long-running consumer of the event bus with start/stop helpers."""

    def __init__(self, *, message_bus: EventBus, name: Optional[str] = None) -> None:
        self.message_bus = message_bus
        self._name = name or self.__class__.__name__
        self.logger = get_logger(self._name)
        self._task: Optional[asyncio.Task[None]] = None
        self._stop_event = asyncio.Event()
        self._ready = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self.logger.info("Starting %s", self._name)
        self._stop_event.clear()
        self._ready.clear()
        self._task = asyncio.create_task(self._run_wrapper(), name=self._name)

    async def wait_ready(self, timeout: float = 5.0) -> None:
        """Block until the agent has subscribed and will see new events."""
        await asyncio.wait_for(self._ready.wait(), timeout=timeout)

    async def stop(self) -> None:
        self.logger.info("Stopping %s", self._name)
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run_wrapper(self) -> None:
        try:
            await self.setup()
            await self.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pragma: no cover - ensure errors are logged
            self.logger.exception("Unhandled exception: %s", exc)
        finally:
            await self.teardown()

    def should_stop(self) -> bool:
        return self._stop_event.is_set()

    def mark_ready(self) -> None:
        self._ready.set()

    async def setup(self) -> None:
        """Optional hook executed once before run loop."""

    async def teardown(self) -> None:
        """Optional hook executed once after run loop."""

    @abc.abstractmethod
    async def run(self) -> None:
        """Main agent body."""

"""Per-key serialization of calendar mutations."""

from __future__ import annotations

import abc
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Protocol

from viewingdesk.core.errors import Unavailable


class AsyncLock(Protocol):
    async def __aenter__(self) -> bool: ...
    async def __aexit__(self, exc_type, exc, tb) -> None: ...


class LockManager(abc.ABC):
    @abc.abstractmethod
    def lock(self, key: str, *, timeout: float) -> AsyncLock:  # pragma: no cover - interface
        """Return an async context manager that waits up to ``timeout`` seconds for the lock."""
        raise NotImplementedError


class _KeyedLock:
    def __init__(self, manager: "InMemoryLockManager", key: str, timeout: float) -> None:
        self._manager = manager
        self._key = key
        self._timeout = timeout
        self._held: Optional[asyncio.Lock] = None

    async def __aenter__(self) -> bool:
        lock = self._manager._checkout(self._key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._manager._checkin(self._key)
            return False
        except BaseException:
            self._manager._checkin(self._key)
            raise
        self._held = lock
        return True

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._held is None:
            return
        lock, self._held = self._held, None
        lock.release()
        self._manager._checkin(self._key)


class InMemoryLockManager(LockManager):
    """One ``asyncio.Lock`` per key; waiters acquire in FIFO order.

    A key's lock exists only while someone holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def lock(self, key: str, *, timeout: float) -> AsyncLock:
        return _KeyedLock(self, key, timeout)

    def _checkout(self, key: str) -> asyncio.Lock:
        self._users[key] = self._users.get(key, 0) + 1
        return self._locks.setdefault(key, asyncio.Lock())

    def _checkin(self, key: str) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
            return
        del self._users[key]
        del self._locks[key]

    def locked(self, key: str) -> bool:
        lock: Optional[asyncio.Lock] = self._locks.get(key)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)


@asynccontextmanager
async def agent_lock(locks: LockManager, agent_id: str, *, timeout: float) -> AsyncIterator[None]:
    """Hold the calendar lock of one agent or raise ``Unavailable`` on timeout."""
    async with locks.lock(f"agent:{agent_id}", timeout=timeout) as acquired:
        if not acquired:
            raise Unavailable(
                f"Timed out after {timeout:.1f}s waiting for agent {agent_id}'s calendar",
                details={"agent_id": agent_id},
            )
        yield

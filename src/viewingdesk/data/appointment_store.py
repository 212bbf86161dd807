"""Appointment persistence: in-memory snapshot with optional JSON file backing."""

from __future__ import annotations

import asyncio
import json
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Set

from pydantic import ValidationError

from viewingdesk.core.errors import NotFound, Unavailable
from viewingdesk.core.models import Appointment
from viewingdesk.utils.logging import get_logger


class AppointmentStore:
    """Holds committed appointments.

    Reads are plain snapshot reads of immutable models and never wait on
    writers. ``save`` persists first and only then swaps the new copy in, so a
    failed write leaves both the file and memory at the previous state.
    Appointments are never deleted.
    """

    def __init__(self, path: Optional[Path] = None, *, encryption_key: Optional[str] = None) -> None:
        self._path = path
        self._lock = asyncio.Lock()
        self._records: Dict[str, Appointment] = {}
        self._by_agent: Dict[str, Set[str]] = defaultdict(set)
        self._fernet = self._init_fernet(encryption_key)
        self.logger = get_logger("AppointmentStore")
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                self._load()

    def _init_fernet(self, key: Optional[str]) -> Optional["Fernet"]:
        key = key or os.getenv("VIEWINGDESK_STORE_KEY")
        if not key:
            return None
        from cryptography.fernet import Fernet

        key_bytes = key.encode("utf-8") if isinstance(key, str) else key
        try:
            return Fernet(key_bytes)
        except ValueError as exc:
            raise ValueError("Invalid VIEWINGDESK_STORE_KEY provided for AppointmentStore encryption") from exc

    def _load(self) -> None:
        assert self._path is not None
        raw = self._path.read_bytes()
        if not raw:
            return
        if self._fernet:
            from cryptography.fernet import InvalidToken

            try:
                raw = self._fernet.decrypt(raw)
            except InvalidToken as exc:
                raise ValueError("Unable to decrypt appointment store with provided key") from exc
        data = json.loads(raw.decode("utf-8"))
        for item in data:
            try:
                appointment = Appointment.model_validate(item)
            except ValidationError as exc:
                raise ValueError(f"Invalid appointment record: {exc}") from exc
            self._index(appointment)
        self.logger.info("Loaded %d appointments from %s", len(self._records), self._path)

    def _index(self, appointment: Appointment) -> None:
        self._records[appointment.id] = appointment
        self._by_agent[appointment.agent_id].add(appointment.id)

    def _serialize(self, pending: Appointment) -> bytes:
        records = dict(self._records)
        records[pending.id] = pending
        serialized = [record.model_dump(mode="json") for record in records.values()]
        payload = json.dumps(serialized, indent=2).encode("utf-8")
        if self._fernet:
            payload = self._fernet.encrypt(payload)
        return payload

    def _write(self, payload: bytes) -> None:
        assert self._path is not None
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_bytes(payload)
        os.replace(tmp, self._path)

    def get(self, appointment_id: str) -> Optional[Appointment]:
        return self._records.get(appointment_id)

    def require(self, appointment_id: str) -> Appointment:
        appointment = self._records.get(appointment_id)
        if appointment is None:
            raise NotFound(f"Appointment {appointment_id} does not exist", details={"appointment_id": appointment_id})
        return appointment

    def snapshot(self) -> List[Appointment]:
        return list(self._records.values())

    def for_agent(self, agent_id: str, *, active_only: bool = False) -> List[Appointment]:
        ids = list(self._by_agent.get(agent_id, ()))
        appointments = [self._records[appointment_id] for appointment_id in ids]
        if active_only:
            appointments = [item for item in appointments if not item.is_terminal]
        return sorted(appointments, key=lambda item: item.scheduled_start)

    async def _persist(self, appointment: Appointment, payload: bytes) -> bool:
        """Run the file write to completion; return True if the caller was cancelled meanwhile.

        The worker thread cannot be interrupted, so a cancelled caller keeps
        waiting for it and memory always ends up matching the file.
        """
        write = asyncio.ensure_future(asyncio.to_thread(self._write, payload))
        cancelled = False
        while True:
            try:
                await asyncio.shield(write)
            except asyncio.CancelledError:
                if write.cancelled():
                    raise
                cancelled = True
                continue
            except OSError as exc:
                self.logger.error("Failed to persist appointment %s: %s", appointment.id, exc)
                raise Unavailable(
                    "Appointment store is temporarily unavailable",
                    details={"appointment_id": appointment.id},
                ) from exc
            return cancelled

    async def save(self, appointment: Appointment) -> None:
        """Insert or replace one appointment as a single all-or-nothing step.

        Once the file has been replaced the new copy is always indexed, even
        when the caller is cancelled; the cancellation is re-raised afterwards.
        """
        async with self._lock:
            current = self._records.get(appointment.id)
            if current is not None and current.agent_id != appointment.agent_id:
                raise ValueError("appointments cannot move between agents")
            cancelled = False
            if self._path is not None:
                cancelled = await self._persist(appointment, self._serialize(appointment))
            self._index(appointment)
            if cancelled:
                self.logger.warning("Caller cancelled while appointment %s was being saved", appointment.id)
                raise asyncio.CancelledError()

    def __len__(self) -> int:
        return len(self._records)

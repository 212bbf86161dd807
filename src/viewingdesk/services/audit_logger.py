"""Structured audit logger writing JSON Lines for appointment events."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
from pathlib import Path
from typing import Any, Dict, Optional

from viewingdesk.utils.env import get_path_env


class AuditLogger:
    """Append-only trail of every committed appointment change."""

    def __init__(self, path: Optional[Path] = None) -> None:
        target = path or get_path_env("VIEWINGDESK_AUDIT_LOG", default=Path("artifacts/audit.log"))
        assert target is not None
        target.parent.mkdir(parents=True, exist_ok=True)
        self._path = target
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def log(self, *, event: str, agent_id: str, payload: Dict[str, Any]) -> None:
        record = {
            "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
            "event": event,
            "agent_id": agent_id,
            "payload": payload,
        }
        async with self._lock:
            await asyncio.to_thread(self._append_line, record)

    def _append_line(self, record: Dict[str, Any]) -> None:
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=True, default=str))
            fh.write("\n")

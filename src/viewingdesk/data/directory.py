"""Read-only access to agent working hours and property ids."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

import httpx
import yaml
from pydantic import ValidationError

from viewingdesk.core.errors import Unavailable
from viewingdesk.core.models import AvailabilityWindow
from viewingdesk.utils.logging import get_logger


class AgentDirectory(Protocol):
    """Directory collaborator owned by the listings side of the platform."""

    async def get_agent_working_hours(self, agent_id: str) -> List[AvailabilityWindow]:
        ...

    async def property_exists(self, property_id: str) -> bool:
        ...


def _coerce_time(value: Any) -> Any:
    # YAML 1.1 reads unquoted 17:00 as the base-60 integer 1020
    if isinstance(value, int) and not isinstance(value, bool):
        return dt.time(value // 60, value % 60)
    return value


def _windows_from(agent_id: str, entry: Mapping[str, Any]) -> List[AvailabilityWindow]:
    timezone = entry.get("timezone", "UTC")
    blocked = tuple(entry.get("blocked", ()) or ())
    windows = []
    for item in entry.get("windows", ()) or ():
        data = dict(item)
        data["start_time"] = _coerce_time(data.get("start_time"))
        data["end_time"] = _coerce_time(data.get("end_time"))
        data.setdefault("timezone", timezone)
        data.setdefault("blocked_intervals", blocked)
        data["agent_id"] = agent_id
        windows.append(AvailabilityWindow.model_validate(data))
    return windows


class StaticDirectory:
    """Directory backed by an in-memory mapping, usually loaded from YAML."""

    def __init__(
        self,
        agents: Optional[Mapping[str, Iterable[AvailabilityWindow]]] = None,
        properties: Iterable[str] = (),
    ) -> None:
        self._agents: Dict[str, List[AvailabilityWindow]] = {
            agent_id: list(windows) for agent_id, windows in (agents or {}).items()
        }
        self._properties = set(properties)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "StaticDirectory":
        agents = {}
        for agent_id, entry in (data.get("agents") or {}).items():
            try:
                agents[str(agent_id)] = _windows_from(str(agent_id), entry or {})
            except ValidationError as exc:
                raise ValueError(f"Invalid working hours for agent {agent_id}: {exc}") from exc
        return cls(agents, [str(item) for item in data.get("properties") or ()])

    @classmethod
    def from_file(cls, path: Path) -> "StaticDirectory":
        return cls.from_mapping(yaml.safe_load(path.read_text()) or {})

    def set_working_hours(self, agent_id: str, windows: Iterable[AvailabilityWindow]) -> None:
        self._agents[agent_id] = list(windows)

    def add_property(self, property_id: str) -> None:
        self._properties.add(property_id)

    async def get_agent_working_hours(self, agent_id: str) -> List[AvailabilityWindow]:
        return list(self._agents.get(agent_id, ()))

    async def property_exists(self, property_id: str) -> bool:
        return property_id in self._properties


class HttpDirectory:
    """Directory served by a remote listings service.

    ``GET /agents/{id}/working-hours`` returns a JSON list of windows and
    ``GET /properties/{id}`` answers 200 or 404.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.logger = get_logger("HttpDirectory")

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            self.logger.warning("Directory request %s failed: %s", url, exc)
            raise Unavailable("Agent directory is unreachable", details={"url": url}) from exc
        if response.status_code >= 400 and response.status_code != 404:
            raise Unavailable(
                f"Agent directory returned {response.status_code}",
                details={"url": url, "status": response.status_code},
            )
        return response

    async def get_agent_working_hours(self, agent_id: str) -> List[AvailabilityWindow]:
        response = await self._get(f"/agents/{agent_id}/working-hours")
        if response.status_code == 404:
            return []
        windows = []
        for item in response.json():
            data = dict(item)
            data["agent_id"] = agent_id
            try:
                windows.append(AvailabilityWindow.model_validate(data))
            except ValidationError as exc:
                raise Unavailable(
                    f"Agent directory returned malformed working hours for {agent_id}",
                    details={"agent_id": agent_id},
                ) from exc
        return windows

    async def property_exists(self, property_id: str) -> bool:
        response = await self._get(f"/properties/{property_id}")
        if response.status_code == 404:
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

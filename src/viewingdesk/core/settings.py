"""Runtime settings loader."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError, field_validator, model_validator


class BookingPolicy(BaseModel):
    """Limits applied to every booking and reschedule."""

    model_config = ConfigDict(extra="forbid")

    min_duration_minutes: int = Field(default=15, gt=0)
    max_duration_minutes: int = Field(default=240, gt=0)
    # how far ahead of "now" a viewing must start
    min_lead_time_minutes: int = Field(default=60, ge=0)
    max_attendees: int = Field(default=20, ge=1)
    default_granularity_minutes: int = Field(default=30, gt=0)
    # upper bound on a single availability query
    max_range_days: int = Field(default=31, ge=1)
    # when set, bookings must start on the slot grid
    require_slot_alignment: bool = False

    @model_validator(mode="after")
    def _check_bounds(self) -> "BookingPolicy":
        if self.min_duration_minutes > self.max_duration_minutes:
            raise ValueError("min_duration_minutes must not exceed max_duration_minutes")
        return self


class DirectorySettings(BaseModel):
    """Where agent working hours and property ids come from; exactly one source."""

    model_config = ConfigDict(extra="forbid")

    path: Optional[Path] = None
    base_url: Optional[HttpUrl] = None
    api_key: Optional[str] = None
    timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def _one_source(self) -> "DirectorySettings":
        if (self.path is None) == (self.base_url is None):
            raise ValueError("directory needs exactly one of path or base_url")
        return self


class SchedulerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directory: DirectorySettings
    policy: BookingPolicy = Field(default_factory=BookingPolicy)
    store_path: Optional[Path] = Field(default=Path("appointments.json"))
    timezone: str = "UTC"
    lock_timeout_seconds: float = Field(default=5.0, gt=0)
    audit_log_path: Optional[Path] = None
    event_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = Field(default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @classmethod
    def from_file(cls, path: Path) -> "SchedulerSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            settings = cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid scheduler settings: {exc}") from exc
        base = path.parent
        if settings.store_path and not settings.store_path.is_absolute():
            settings.store_path = (base / settings.store_path).resolve()
        if settings.audit_log_path and not settings.audit_log_path.is_absolute():
            settings.audit_log_path = (base / settings.audit_log_path).resolve()
        if settings.directory.path and not settings.directory.path.is_absolute():
            settings.directory.path = (base / settings.directory.path).resolve()
        return settings

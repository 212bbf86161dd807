"""Data models shared across the scheduling core."""

from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator, model_validator


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_aware(value: dt.datetime, field: str = "timestamp") -> dt.datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f"{field} must be timezone-aware")
    return value


class ViewingStatus(str, Enum):
    """Appointment status; see ``core.lifecycle`` for legal transitions."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ViewingStatus.COMPLETED, ViewingStatus.CANCELLED, ViewingStatus.NO_SHOW})
ACTIVE_STATUSES = frozenset(set(ViewingStatus) - TERMINAL_STATUSES)


class ViewingType(str, Enum):
    IN_PERSON = "in_person"
    VIRTUAL = "virtual"
    SELF_GUIDED = "self_guided"


class EventType(str, Enum):
    """Message types flowing through the system."""

    STATUS_CHANGED = "viewing.status_changed"
    RESCHEDULED = "viewing.rescheduled"


class Interval(BaseModel):
    """Half-open time range ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: dt.datetime
    end: dt.datetime

    @field_validator("start", "end")
    @classmethod
    def _aware(cls, value: dt.datetime, info) -> dt.datetime:
        return ensure_aware(value, info.field_name)

    @model_validator(mode="after")
    def _ordered(self) -> "Interval":
        if self.start >= self.end:
            raise ValueError("interval start must be before its end")
        return self

    @classmethod
    def from_duration(cls, start: dt.datetime, minutes: int) -> "Interval":
        return cls(start=start, end=start + dt.timedelta(minutes=minutes))

    @property
    def duration(self) -> dt.timedelta:
        return self.end - self.start


class ClientContact(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=40)


class Appointment(BaseModel):
    """A committed viewing booking.

    Instances are immutable; every mutation goes through the lifecycle or
    rescheduling services, which store a copy with ``version + 1``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    agent_id: str
    property_id: str
    client_contact: ClientContact
    scheduled_start: dt.datetime
    duration_minutes: int = Field(gt=0)
    viewing_type: ViewingType = ViewingType.IN_PERSON
    attendee_count: int = Field(default=1, ge=1)
    status: ViewingStatus = ViewingStatus.SCHEDULED
    notes: Optional[str] = None
    version: int = Field(default=1, ge=1)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)
    cancellation_reason: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback: Optional[str] = None

    @field_validator("scheduled_start")
    @classmethod
    def _aware_start(cls, value: dt.datetime) -> dt.datetime:
        return ensure_aware(value, "scheduled_start")

    @computed_field  # type: ignore[misc]
    @property
    def scheduled_end(self) -> dt.datetime:
        return self.scheduled_start + dt.timedelta(minutes=self.duration_minutes)

    @property
    def interval(self) -> Interval:
        return Interval(start=self.scheduled_start, end=self.scheduled_end)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class AvailabilityWindow(BaseModel):
    """Agent-declared bookable hours, weekly (``day_of_week``) or for one ``date``.

    ``start_time``/``end_time`` are wall-clock times in ``timezone``.
    """

    model_config = ConfigDict(frozen=True)

    agent_id: str
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    date: Optional[dt.date] = None
    start_time: dt.time
    end_time: dt.time
    timezone: str = "UTC"
    blocked_intervals: Tuple[Interval, ...] = ()

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @model_validator(mode="after")
    def _check_shape(self) -> "AvailabilityWindow":
        if (self.day_of_week is None) == (self.date is None):
            raise ValueError("exactly one of day_of_week or date must be set")
        if self.start_time.tzinfo is not None or self.end_time.tzinfo is not None:
            raise ValueError("window times are wall-clock times; set timezone instead")
        if self.start_time >= self.end_time:
            raise ValueError("window start_time must be before end_time")
        return self

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def applies_on(self, day: dt.date) -> bool:
        if self.date is not None:
            return self.date == day
        return day.weekday() == self.day_of_week

    def interval_on(self, day: dt.date) -> Interval:
        tz = self.tzinfo
        return Interval(
            start=dt.datetime.combine(day, self.start_time, tzinfo=tz),
            end=dt.datetime.combine(day, self.end_time, tzinfo=tz),
        )


class BookingRequest(BaseModel):
    """Request to book a viewing; policy limits are enforced by the booking engine."""

    agent_id: str = Field(min_length=1)
    property_id: str = Field(min_length=1)
    scheduled_start: dt.datetime
    duration_minutes: int
    viewing_type: ViewingType = ViewingType.IN_PERSON
    attendee_count: int = 1
    client_contact: ClientContact
    notes: Optional[str] = None


class StatusChange(BaseModel):
    """Notification payload emitted for every status change (creation included)."""

    appointment_id: str
    agent_id: str
    previous_status: Optional[ViewingStatus] = None
    new_status: ViewingStatus
    version: int
    timestamp: dt.datetime = Field(default_factory=utcnow)


class EventEnvelope(BaseModel):
    """Wrapper to transport events safely through the message bus."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: dt.datetime = Field(default_factory=utcnow)
    type: EventType
    agent_id: str
    payload: Dict[str, Any]
    trace_id: Optional[str] = None

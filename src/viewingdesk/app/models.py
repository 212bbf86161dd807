"""Request and response bodies of the HTTP API."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from viewingdesk.core.models import ViewingStatus


class AppState(BaseModel):
    started: bool
    appointments: int


class AvailabilityResponse(BaseModel):
    agent_id: str
    granularity_minutes: int
    slots: List[dt.datetime]


class TransitionBody(BaseModel):
    expected_version: int = Field(ge=1)
    target_status: ViewingStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class RescheduleBody(BaseModel):
    expected_version: int = Field(ge=1)
    new_start: dt.datetime
    new_duration: Optional[int] = None


class FeedbackBody(BaseModel):
    expected_version: int = Field(ge=1)
    rating: int
    feedback: Optional[str] = Field(default=None, max_length=2000)

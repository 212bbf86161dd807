"""FastAPI application exposing the scheduling operations."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from viewingdesk.app.models import (
    AppState,
    AvailabilityResponse,
    FeedbackBody,
    RescheduleBody,
    TransitionBody,
)
from viewingdesk.core.errors import (
    InvalidTransition,
    NotFound,
    SchedulingError,
    SlotUnavailable,
    StaleVersion,
    Unavailable,
    ValidationError,
)
from viewingdesk.core.models import Appointment, BookingRequest, ViewingStatus
from viewingdesk.core.runtime import SchedulerRuntime
from viewingdesk.core.settings import SchedulerSettings
from viewingdesk.services.queries import ViewingStats
from viewingdesk.utils.env import get_bool_env, get_list_env, get_path_env
from viewingdesk.utils.logging import get_logger


logger = get_logger("SchedulerAPI")

STATUS_CODES = {
    ValidationError: 422,
    NotFound: 404,
    SlotUnavailable: 409,
    InvalidTransition: 409,
    StaleVersion: 409,
    Unavailable: 503,
}


def status_for(exc: SchedulingError) -> int:
    for error_type, status in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(settings: Optional[SchedulerSettings] = None, *, runtime: Optional[SchedulerRuntime] = None) -> FastAPI:
    if runtime is None:
        if settings is None:
            raise ValueError("create_app needs settings or a runtime")
        runtime = SchedulerRuntime.from_settings(settings, audit=get_bool_env("VIEWINGDESK_AUDIT", default=True))

    app = FastAPI(title="Viewing Scheduler")
    app.state.runtime = runtime

    origins = get_list_env("VIEWINGDESK_CORS_ORIGINS")
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    async def _startup() -> None:  # pragma: no cover
        await runtime.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover
        await runtime.close()

    @app.exception_handler(SchedulingError)
    async def _scheduling_error(request: Request, exc: SchedulingError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ValidationError("Request failed validation", details={"errors": exc.errors()})
        return JSONResponse(status_code=422, content=jsonable_encoder(error.to_dict()))

    @app.get("/health", response_model=AppState)
    async def health() -> AppState:
        return AppState(started=runtime.started, appointments=len(runtime.store))

    @app.get("/availability", response_model=AvailabilityResponse)
    async def availability(
        agent_id: str,
        range_start: dt.datetime = Query(alias="from"),
        range_end: dt.datetime = Query(alias="to"),
        granularity: Optional[int] = None,
    ) -> AvailabilityResponse:
        slots = await runtime.availability.compute_free_slots(agent_id, range_start, range_end, granularity)
        if granularity is None:
            granularity = runtime.availability.policy.default_granularity_minutes
        return AvailabilityResponse(
            agent_id=agent_id,
            granularity_minutes=granularity,
            slots=list(slots.starts()),
        )

    @app.post("/bookings", response_model=Appointment, status_code=201)
    async def book(payload: BookingRequest) -> Appointment:
        return await runtime.booking.book(payload)

    @app.get("/bookings", response_model=List[Appointment])
    async def list_bookings(
        agent_id: Optional[str] = None,
        status: Optional[ViewingStatus] = None,
        date: Optional[dt.date] = None,
        q: Optional[str] = None,
    ) -> List[Appointment]:
        return runtime.queries.find(agent_id=agent_id, status=status, day=date, text=q)

    @app.get("/bookings/stats", response_model=ViewingStats)
    async def booking_stats(agent_id: Optional[str] = None) -> ViewingStats:
        return runtime.queries.stats(agent_id=agent_id)

    @app.get("/bookings/{appointment_id}", response_model=Appointment)
    async def get_booking(appointment_id: str) -> Appointment:
        return runtime.queries.get_by_id(appointment_id)

    @app.post("/bookings/{appointment_id}/transition", response_model=Appointment)
    async def transition(appointment_id: str, payload: TransitionBody) -> Appointment:
        return await runtime.lifecycle.transition(
            appointment_id, payload.expected_version, payload.target_status, reason=payload.reason
        )

    @app.post("/bookings/{appointment_id}/reschedule", response_model=Appointment)
    async def reschedule(appointment_id: str, payload: RescheduleBody) -> Appointment:
        return await runtime.rescheduling.reschedule(
            appointment_id, payload.expected_version, payload.new_start, payload.new_duration
        )

    @app.post("/bookings/{appointment_id}/feedback", response_model=Appointment)
    async def feedback(appointment_id: str, payload: FeedbackBody) -> Appointment:
        return await runtime.lifecycle.record_feedback(
            appointment_id, payload.expected_version, payload.rating, payload.feedback
        )

    return app


def app_from_env() -> FastAPI:
    """ASGI factory: ``uvicorn viewingdesk.app.main:app_from_env --factory``."""
    config_path = get_path_env("VIEWINGDESK_CONFIG", default=Path("config/scheduler.example.yml"))
    assert config_path is not None
    return create_app(SchedulerSettings.from_file(config_path))

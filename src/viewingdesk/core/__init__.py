"""Core scheduling primitives: models, rules, locks, events and settings."""

from .errors import (
    InvalidTransition,
    NotFound,
    SchedulingError,
    SlotUnavailable,
    StaleVersion,
    Unavailable,
    ValidationError,
)
from .message_bus import MessageBus
from .models import (
    Appointment,
    AvailabilityWindow,
    BookingRequest,
    ClientContact,
    EventEnvelope,
    EventType,
    Interval,
    StatusChange,
    ViewingStatus,
    ViewingType,
)

__all__ = [
    "Appointment",
    "AvailabilityWindow",
    "BookingRequest",
    "ClientContact",
    "EventEnvelope",
    "EventType",
    "Interval",
    "InvalidTransition",
    "MessageBus",
    "NotFound",
    "SchedulingError",
    "SlotUnavailable",
    "StaleVersion",
    "StatusChange",
    "Unavailable",
    "ValidationError",
    "ViewingStatus",
    "ViewingType",
]

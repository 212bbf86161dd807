"""Scheduling services built on the core primitives."""

from .audit_logger import AuditLogger
from .availability import AvailabilityStore, FreeSlots
from .booking import BookingEngine
from .events import EventPublisher
from .lifecycle import ViewingLifecycle
from .queries import QueryFacade, ViewingStats
from .rescheduling import ReschedulingEngine

__all__ = [
    "AuditLogger",
    "AvailabilityStore",
    "BookingEngine",
    "EventPublisher",
    "FreeSlots",
    "QueryFacade",
    "ReschedulingEngine",
    "ViewingLifecycle",
    "ViewingStats",
]

"""Error taxonomy for the scheduling core.

Every failed operation raises exactly one of these, so callers can decide
between correcting input, re-reading and retrying, or surfacing the failure.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for scheduling failures."""

    code = "scheduling_error"
    retryable = False

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "retryable": self.retryable,
                "details": self.details,
            }
        }


class ValidationError(SchedulingError):
    """Malformed or out-of-range request field."""

    code = "validation_error"

    def __init__(self, message: str, *, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        merged = dict(details or {})
        if field:
            merged.setdefault("field", field)
        super().__init__(message, details=merged)
        self.field = field


class SlotUnavailable(SchedulingError):
    """Interval conflicts with a booking or lies outside availability."""

    code = "slot_unavailable"


class InvalidTransition(SchedulingError):
    code = "invalid_transition"


class StaleVersion(SchedulingError):
    """Optimistic concurrency conflict; re-read and retry."""

    code = "stale_version"
    retryable = True


class NotFound(SchedulingError):
    code = "not_found"


class Unavailable(SchedulingError):
    """Transient fault (lock timeout, persistence failure); safe to retry."""

    code = "unavailable"
    retryable = True

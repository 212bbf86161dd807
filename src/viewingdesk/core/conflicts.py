"""Interval arithmetic and conflict detection.

``overlaps`` is the single definition of a conflict; everything that compares
intervals (booking, rescheduling, free-slot subtraction) goes through it.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from viewingdesk.core.models import Appointment, Interval


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap: back-to-back intervals do not conflict."""
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def find_conflicts(
    interval: Interval,
    appointments: Iterable[Appointment],
    *,
    exclude_id: Optional[str] = None,
) -> List[Appointment]:
    """Return active appointments whose interval overlaps ``interval``."""
    return [
        appointment
        for appointment in appointments
        if appointment.id != exclude_id
        and not appointment.is_terminal
        and overlaps(interval, appointment.interval)
    ]


def merge(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort and coalesce overlapping or touching intervals."""
    merged: List[Interval] = []
    for interval in sorted(intervals, key=lambda item: (item.start, item.end)):
        if merged and interval.start <= merged[-1].end:
            if interval.end > merged[-1].end:
                merged[-1] = Interval(start=merged[-1].start, end=interval.end)
            continue
        merged.append(interval)
    return merged


def subtract(free: Iterable[Interval], busy: Iterable[Interval]) -> List[Interval]:
    """Remove every busy interval from the free set."""
    remaining = merge(free)
    for blocker in merge(busy):
        pieces: List[Interval] = []
        for interval in remaining:
            if not overlaps(interval, blocker):
                pieces.append(interval)
                continue
            if interval.start < blocker.start:
                pieces.append(Interval(start=interval.start, end=blocker.start))
            if blocker.end < interval.end:
                pieces.append(Interval(start=blocker.end, end=interval.end))
        remaining = pieces
    return remaining

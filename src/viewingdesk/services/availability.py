"""Free/busy computation over agent working hours and committed appointments."""

from __future__ import annotations

import datetime as dt
from typing import Iterator, List, Optional, Sequence
from zoneinfo import ZoneInfo

from viewingdesk.core.conflicts import merge, subtract
from viewingdesk.core.errors import ValidationError
from viewingdesk.core.models import AvailabilityWindow, Interval, ensure_aware
from viewingdesk.core.settings import BookingPolicy
from viewingdesk.data.appointment_store import AppointmentStore
from viewingdesk.data.directory import AgentDirectory


def align_up(moment: dt.datetime, granularity: dt.timedelta, tz: ZoneInfo) -> dt.datetime:
    """First grid point at or after ``moment``; the grid starts at local midnight in ``tz``."""
    local = moment.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    offset = local - midnight
    steps = -(-offset // granularity)
    return (midnight + steps * granularity).astimezone(dt.timezone.utc)


def is_aligned(moment: dt.datetime, granularity: dt.timedelta, tz: ZoneInfo) -> bool:
    return align_up(moment, granularity, tz) == moment


class FreeSlots:
    """Lazy, restartable sequence of free slots.

    Holds a snapshot of the free intervals; every iteration walks them again
    and yields the same ascending ``Interval`` slots.
    """

    def __init__(self, free: Sequence[Interval], granularity: dt.timedelta, tz: ZoneInfo) -> None:
        self._free = tuple(free)
        self._granularity = granularity
        self._tz = tz

    @property
    def free_intervals(self) -> Sequence[Interval]:
        return self._free

    def __iter__(self) -> Iterator[Interval]:
        step = self._granularity
        for interval in self._free:
            current = align_up(interval.start, step, self._tz)
            while current + step <= interval.end:
                yield Interval(start=current, end=current + step)
                current += step

    def starts(self) -> Iterator[dt.datetime]:
        for slot in self:
            yield slot.start

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None


class AvailabilityStore:
    """Computes when an agent can still take a viewing. Read-only."""

    def __init__(
        self,
        store: AppointmentStore,
        directory: AgentDirectory,
        *,
        policy: Optional[BookingPolicy] = None,
        timezone: str = "UTC",
    ) -> None:
        self._store = store
        self._directory = directory
        self._policy = policy or BookingPolicy()
        self._default_tz = ZoneInfo(timezone)

    @property
    def policy(self) -> BookingPolicy:
        return self._policy

    def agent_timezone(self, windows: Sequence[AvailabilityWindow]) -> ZoneInfo:
        return windows[0].tzinfo if windows else self._default_tz

    async def compute_free_slots(
        self,
        agent_id: str,
        range_start: dt.datetime,
        range_end: dt.datetime,
        granularity_minutes: Optional[int] = None,
    ) -> FreeSlots:
        """Aligned slots of ``granularity_minutes`` that are free for the agent."""
        default = self._policy.default_granularity_minutes
        granularity = default if granularity_minutes is None else granularity_minutes
        if granularity <= 0:
            raise ValidationError("granularity must be positive", field="granularity")
        self._check_range(range_start, range_end)
        windows = await self._directory.get_agent_working_hours(agent_id)
        free = self.free_intervals(agent_id, windows, Interval(start=range_start, end=range_end))
        return FreeSlots(free, dt.timedelta(minutes=granularity), self.agent_timezone(windows))

    def _check_range(self, range_start: dt.datetime, range_end: dt.datetime) -> None:
        try:
            ensure_aware(range_start, "from")
            ensure_aware(range_end, "to")
        except ValueError as exc:
            raise ValidationError(str(exc), field="range") from exc
        if range_start >= range_end:
            raise ValidationError("range start must be before range end", field="range")
        if range_end - range_start > dt.timedelta(days=self._policy.max_range_days):
            raise ValidationError(
                f"range may span at most {self._policy.max_range_days} days", field="range"
            )

    def free_intervals(
        self,
        agent_id: str,
        windows: Sequence[AvailabilityWindow],
        bounds: Interval,
        *,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Interval]:
        """Working time within ``bounds`` minus blocked time and active appointments."""
        nominal = self.working_intervals(windows, bounds)
        blocked = [item for window in windows for item in window.blocked_intervals]
        busy = [
            appointment.interval
            for appointment in self._store.for_agent(agent_id, active_only=True)
            if appointment.id != exclude_appointment_id
        ]
        return subtract(subtract(nominal, blocked), busy)

    def working_intervals(self, windows: Sequence[AvailabilityWindow], bounds: Interval) -> List[Interval]:
        """Expand windows into absolute intervals clipped to ``bounds``.

        A dated window replaces the weekly windows for its local date.
        """
        override_dates = {window.date for window in windows if window.date is not None}
        pieces: List[Interval] = []
        for window in windows:
            tz = window.tzinfo
            day = bounds.start.astimezone(tz).date()
            last = bounds.end.astimezone(tz).date()
            while day <= last:
                if window.applies_on(day) and (window.date is not None or day not in override_dates):
                    span = window.interval_on(day)
                    start = max(span.start, bounds.start)
                    end = min(span.end, bounds.end)
                    if start < end:
                        pieces.append(Interval(start=start, end=end))
                day += dt.timedelta(days=1)
        return merge(pieces)

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, Optional

from slotbook.scheduling.availability import AvailabilityWindow, get_host, resolve_window
from slotbook.scheduling.busy import collect_busy
from slotbook.scheduling.errors import SlotUnavailableError, ValidationError
from slotbook.scheduling.intervals import Interval, merge_intervals
from slotbook.timeutils import as_utc, local_day_bounds, utcnow


log = logging.getLogger(__name__)

DEFAULT_GRANULARITY_MINUTES = 15


class SlotSequence:
    """Ordered, finite sequence of offerable UTC slot starts for one window.

    Iterating twice walks the candidates afresh, so the sequence can be
    consumed any number of times and always yields the same instants.
    A candidate ``t`` is offered when ``[t, t + duration)`` lies inside the
    window, ``t`` is strictly after ``now`` and no busy interval overlaps it.
    """

    def __init__(
        self,
        window: Optional[AvailabilityWindow],
        duration_minutes: int,
        busy_intervals: Iterable,
        now: datetime,
        granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    ):
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        if granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be positive")
        self.window = window
        self.duration = timedelta(minutes=duration_minutes)
        self.step = timedelta(minutes=granularity_minutes)
        self.busy = tuple(merge_intervals(Interval.of(s, e) for s, e in busy_intervals))
        self.now = as_utc(now)
        self._bounds = window.utc_bounds() if window is not None else None

    def __iter__(self) -> Iterator[datetime]:
        if self._bounds is None:
            return
        start, end = self._bounds
        t = start
        while t + self.duration <= end:
            if t > self.now and not self._conflicts(t):
                yield t
            t += self.step

    def __contains__(self, instant) -> bool:
        return self.rejection(instant) is None

    def _conflicts(self, t: datetime) -> bool:
        slot_end = t + self.duration
        for busy in self.busy:
            if busy.start >= slot_end:
                break
            if busy.overlaps(t, slot_end):
                return True
        return False

    def rejection(self, instant: datetime) -> Optional[str]:
        """Why ``instant`` would not be offered, or None when it would be."""
        t = as_utc(instant)
        if t <= self.now:
            return SlotUnavailableError.PAST
        if self._bounds is None:
            return SlotUnavailableError.OUTSIDE_HOURS
        start, end = self._bounds
        if t < start or t + self.duration > end:
            return SlotUnavailableError.OUTSIDE_HOURS
        if (t - start) % self.step:
            return SlotUnavailableError.MISALIGNED
        if self._conflicts(t):
            return SlotUnavailableError.ALREADY_BOOKED
        return None


def generate_slots(
    window: Optional[AvailabilityWindow],
    duration_minutes: int,
    busy_intervals: Iterable,
    now: datetime,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> SlotSequence:
    return SlotSequence(window, duration_minutes, busy_intervals, now, granularity_minutes)


def offerable_slots(
    host_id: int,
    calendar_date: date,
    duration_minutes: int,
    calendar=None,
    now: Optional[datetime] = None,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    exclude_booking_id: Optional[int] = None,
    exclude_event_id: Optional[str] = None,
) -> SlotSequence:
    """Resolve the window, gather busy time and build the slot sequence for a date."""
    now = now or utcnow()
    window = resolve_window(host_id, calendar_date)
    busy: List[Interval] = []
    if window is not None:
        day_start, day_end = local_day_bounds(calendar_date, window.timezone)
        busy = collect_busy(
            host_id,
            day_start,
            day_end,
            calendar=calendar,
            exclude_booking_id=exclude_booking_id,
            exclude_event_id=exclude_event_id,
        )
    return generate_slots(window, duration_minutes, busy, now, granularity_minutes)


def month_overview(
    host_id: int,
    year: int,
    month: int,
    duration_minutes: int,
    calendar=None,
    now: Optional[datetime] = None,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> List[dict]:
    """Per-date ``has_slots`` flags for a month, with one busy lookup for the whole range."""
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    now = now or utcnow()
    host = get_host(host_id)
    first = date(year, month, 1)
    next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    days = [first + timedelta(days=i) for i in range((next_month - first).days)]

    windows = {d: resolve_window(host.id, d) for d in days}
    busy: List[Interval] = []
    if any(w is not None for w in windows.values()):
        tz_name = next(w.timezone for w in windows.values() if w is not None)
        range_start = local_day_bounds(first, tz_name)[0]
        range_end = local_day_bounds(days[-1], tz_name)[1]
        busy = collect_busy(host.id, range_start, range_end, calendar=calendar)

    results = []
    for d in days:
        slots = generate_slots(windows[d], duration_minutes, busy, now, granularity_minutes)
        results.append({"date": d.isoformat(), "has_slots": next(iter(slots), None) is not None})
    return results

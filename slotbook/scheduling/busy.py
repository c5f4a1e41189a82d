import logging
from datetime import datetime
from typing import List, Optional

from slotbook.models import Booking, BookingStatus
from slotbook.scheduling.availability import get_host
from slotbook.scheduling.errors import ExternalProviderError
from slotbook.scheduling.intervals import Interval, merge_intervals
from slotbook.timeutils import as_utc, to_naive_utc


log = logging.getLogger(__name__)


def booked_intervals(
    host_id: int,
    range_start: datetime,
    range_end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> List[Interval]:
    """Confirmed bookings of the host intersecting [range_start, range_end)."""
    query = Booking.query.filter(
        Booking.host_id == host_id,
        Booking.status == BookingStatus.CONFIRMED.value,
        Booking.start_utc < to_naive_utc(range_end),
        Booking.end_utc > to_naive_utc(range_start),
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return [Interval.of(b.start_utc, b.end_utc) for b in query.all()]


def external_intervals(host, calendar, range_start: datetime, range_end: datetime,
                       exclude_event_id: Optional[str] = None) -> List[Interval]:
    """Busy blocks from the host's connected calendar; empty when unavailable.

    With ``exclude_event_id`` the calendar's event list is read instead of its
    free/busy summary so that one event can be left out.
    """
    if calendar is None or not host.calendar_connected:
        return []
    try:
        if exclude_event_id:
            blocks = calendar.get_busy_intervals_excluding(
                host.google_credentials, range_start, range_end, exclude_event_id
            )
        else:
            blocks = calendar.get_busy_intervals(host.google_credentials, range_start, range_end)
        return [Interval.of(start, end) for start, end in blocks]
    except ExternalProviderError as e:
        log.warning(
            "Calendar busy lookup failed for host %s, using internal bookings only: %s",
            host.id,
            e,
        )
        return []


def collect_busy(
    host_id: int,
    range_start: datetime,
    range_end: datetime,
    calendar=None,
    exclude_booking_id: Optional[int] = None,
    exclude_event_id: Optional[str] = None,
) -> List[Interval]:
    """Sorted, merged [start, end) intervals during which the host is unavailable.

    ``exclude_booking_id`` leaves one booking out of the internal set and
    ``exclude_event_id`` leaves its linked calendar event out of the external
    blocks; together they let a booking being moved stop blocking itself
    while every other event keeps counting.
    """
    host = get_host(host_id)
    range_start, range_end = as_utc(range_start), as_utc(range_end)
    internal = booked_intervals(host.id, range_start, range_end, exclude_booking_id)
    external = external_intervals(host, calendar, range_start, range_end, exclude_event_id)
    return merge_intervals(internal + external)

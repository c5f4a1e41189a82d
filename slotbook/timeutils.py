"""Wall-clock / UTC conversions for host time zones.

Every zone-aware computation in the package goes through these helpers so that
weekday and local-time arithmetic is done in exactly one place. Instants handed
around the scheduling core are timezone-aware UTC datetimes; the database keeps
naive UTC values.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import pytz


log = logging.getLogger(__name__)

# Used whenever a host has no usable time zone configured.
DEFAULT_TIMEZONE = "America/Chicago"

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def is_valid_timezone(name: Optional[str]) -> bool:
    if not name:
        return False
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return False
    return True


def get_zone(name: Optional[str], fallback: str = DEFAULT_TIMEZONE):
    """Return the pytz zone for ``name``, falling back to ``fallback``."""
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            log.warning("Unknown time zone %r, using %s", name, fallback)
    return pytz.timezone(fallback)


def as_utc(dt: datetime) -> datetime:
    """Normalize ``dt`` to an aware UTC datetime. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_naive_utc(dt: datetime) -> datetime:
    return as_utc(dt).replace(tzinfo=None)


def local_to_utc(day: date, wall_time: time, tz_name: Optional[str]) -> datetime:
    """Convert a local wall-clock time on ``day`` to a UTC instant.

    Wall times skipped by a DST jump are pushed forward by the normalization;
    ambiguous wall times resolve to the standard-time reading.
    """
    tz = get_zone(tz_name)
    local = tz.normalize(tz.localize(datetime.combine(day, wall_time), is_dst=False))
    return local.astimezone(pytz.UTC)


def utc_to_local(instant: datetime, tz_name: Optional[str]) -> datetime:
    return as_utc(instant).astimezone(get_zone(tz_name))


def local_date(instant: datetime, tz_name: Optional[str]) -> date:
    """The calendar date ``instant`` falls on in the given zone."""
    return utc_to_local(instant, tz_name).date()


def local_day_bounds(day: date, tz_name: Optional[str]) -> Tuple[datetime, datetime]:
    """UTC [start, end) of the local calendar day, DST-length days included."""
    start = local_to_utc(day, time.min, tz_name)
    end = local_to_utc(day + timedelta(days=1), time.min, tz_name)
    return start, end


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    A trailing ``Z`` is accepted; a value without an offset is taken as UTC.
    Raises ``ValueError`` for malformed input.
    """
    if not value:
        raise ValueError("empty timestamp")
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(value))


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (seconds tolerated) into a ``time``."""
    value = (value or "").strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"invalid time {value!r}, expected HH:MM")


def format_hhmm(t: time) -> str:
    return f"{t.hour:02d}:{t.minute:02d}"


def isoformat_utc(instant: datetime) -> str:
    return as_utc(instant).isoformat().replace("+00:00", "Z")

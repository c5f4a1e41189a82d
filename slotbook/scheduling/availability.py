import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, List, Mapping, Optional, Tuple

from slotbook import db
from slotbook.models import AvailabilityRule, Host
from slotbook.scheduling.errors import NotFoundError, ValidationError
from slotbook.timeutils import (
    DEFAULT_TIMEZONE,
    day_of_week,
    format_hhmm,
    is_valid_timezone,
    local_to_utc,
    parse_hhmm,
)


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilityWindow:
    """The host's working window on one local calendar date."""

    day: date
    local_start: time
    local_end: time
    timezone: str

    def utc_bounds(self) -> Tuple[datetime, datetime]:
        return (
            local_to_utc(self.day, self.local_start, self.timezone),
            local_to_utc(self.day, self.local_end, self.timezone),
        )

    def to_dict(self):
        return {
            "date": self.day.isoformat(),
            "start": format_hhmm(self.local_start),
            "end": format_hhmm(self.local_end),
            "timezone": self.timezone,
        }


def get_host(host_id: int) -> Host:
    """Load an active host or raise ``NotFoundError``."""
    host = db.session.get(Host, host_id) if host_id is not None else None
    if host is None or not host.is_active:
        raise NotFoundError("Host not found")
    return host


def host_timezone(host: Host) -> str:
    """The host's zone name, or the fixed fallback when unset or unknown."""
    if is_valid_timezone(host.timezone):
        return host.timezone
    return DEFAULT_TIMEZONE


def resolve_window(host_id: int, calendar_date: date) -> Optional[AvailabilityWindow]:
    """Weekly window applicable to ``calendar_date`` (a host-local date), or None."""
    host = get_host(host_id)
    tz_name = host_timezone(host)
    rule = AvailabilityRule.query.filter_by(
        host_id=host.id, day_of_week=day_of_week(calendar_date)
    ).first()
    if rule is None or not rule.is_available:
        return None
    if rule.start_time >= rule.end_time:
        log.warning("Ignoring inverted availability rule %s for host %s", rule.id, host.id)
        return None
    return AvailabilityWindow(calendar_date, rule.start_time, rule.end_time, tz_name)


def weekly_schedule(host_id: int) -> List[AvailabilityRule]:
    get_host(host_id)
    return (
        AvailabilityRule.query.filter_by(host_id=host_id)
        .order_by(AvailabilityRule.day_of_week.asc())
        .all()
    )


def _parse_rule(raw: Mapping) -> AvailabilityRule:
    try:
        day = int(raw["day_of_week"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("Each rule needs an integer day_of_week")
    if not 0 <= day <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    try:
        start = parse_hhmm(raw.get("start_time", ""))
        end = parse_hhmm(raw.get("end_time", ""))
    except ValueError as e:
        raise ValidationError(f"Invalid time for day {day}: {e}")
    is_available = bool(raw.get("is_available", True))
    if is_available and start >= end:
        raise ValidationError(f"End time must be after start time for day {day}")
    return AvailabilityRule(day_of_week=day, start_time=start, end_time=end, is_available=is_available)


def replace_weekly_schedule(host_id: int, rules: Iterable[Mapping]) -> List[AvailabilityRule]:
    """Swap the host's whole weekly schedule for ``rules`` (delete-then-insert)."""
    host = get_host(host_id)
    parsed = [_parse_rule(r) for r in rules]
    seen = set()
    for rule in parsed:
        if rule.day_of_week in seen:
            raise ValidationError(f"Duplicate rule for day {rule.day_of_week}")
        seen.add(rule.day_of_week)

    AvailabilityRule.query.filter_by(host_id=host.id).delete(synchronize_session=False)
    for rule in parsed:
        rule.host_id = host.id
        db.session.add(rule)
    db.session.commit()
    log.info("Saved weekly schedule for host %s (%d rules)", host.id, len(parsed))
    return weekly_schedule(host.id)


def default_weekly_rules() -> List[dict]:
    # Mon-Fri 09:00-17:00
    return [
        {"day_of_week": d, "start_time": "09:00", "end_time": "17:00", "is_available": True}
        for d in range(1, 6)
    ]

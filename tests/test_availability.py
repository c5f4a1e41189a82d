from datetime import time

import pytest

from slotbook import db
from slotbook.models import AvailabilityRule
from slotbook.scheduling.availability import (
    default_weekly_rules,
    replace_weekly_schedule,
    resolve_window,
    weekly_schedule,
)
from slotbook.scheduling.errors import NotFoundError, ValidationError
from conftest import MONDAY, TUESDAY, utc


def test_resolves_window_for_weekday(chicago_host):
    host, _ = chicago_host
    window = resolve_window(host.id, MONDAY)
    assert window.local_start == time(9, 0)
    assert window.local_end == time(17, 0)
    assert window.timezone == "America/Chicago"
    assert window.utc_bounds() == (utc(2030, 1, 7, 15, 0), utc(2030, 1, 7, 23, 0))


def test_no_rule_means_no_window(chicago_host):
    host, _ = chicago_host
    assert resolve_window(host.id, TUESDAY) is None


def test_unavailable_rule_means_no_window(ctx, make_host, set_rule):
    host = make_host()
    set_rule(host, 1, available=False)
    assert resolve_window(host.id, MONDAY) is None


def test_unknown_host_raises(ctx):
    with pytest.raises(NotFoundError):
        resolve_window(9999, MONDAY)


def test_deleted_host_raises(chicago_host):
    host, _ = chicago_host
    host.soft_delete()
    db.session.commit()
    with pytest.raises(NotFoundError):
        resolve_window(host.id, MONDAY)


def test_unresolvable_timezone_defaults_to_chicago(ctx, make_host, set_rule):
    host = make_host(tz_name="Nowhere/Special")
    set_rule(host, 1)
    window = resolve_window(host.id, MONDAY)
    assert window.timezone == "America/Chicago"


def test_weekday_is_taken_from_the_date_in_host_zone(ctx, make_host, set_rule):
    host = make_host(tz_name="Asia/Tokyo")
    set_rule(host, 1, "08:00", "12:00")
    window = resolve_window(host.id, MONDAY)
    # Monday 08:00 in Tokyo is still Sunday in UTC
    assert window.utc_bounds()[0] == utc(2030, 1, 6, 23, 0)


def test_replace_weekly_schedule_swaps_all_rules(ctx, make_host, set_rule):
    host = make_host()
    set_rule(host, 1, "08:00", "10:00")
    set_rule(host, 3, "08:00", "10:00")

    saved = replace_weekly_schedule(host.id, [
        {"day_of_week": 1, "start_time": "09:00", "end_time": "17:00"},
        {"day_of_week": 2, "start_time": "10:00", "end_time": "14:00", "is_available": False},
    ])

    assert [r.day_of_week for r in saved] == [1, 2]
    assert AvailabilityRule.query.filter_by(host_id=host.id, day_of_week=3).count() == 0
    assert resolve_window(host.id, MONDAY).local_start == time(9, 0)
    assert resolve_window(host.id, TUESDAY) is None


@pytest.mark.parametrize("rules", [
    [{"day_of_week": 7, "start_time": "09:00", "end_time": "17:00"}],
    [{"day_of_week": "x", "start_time": "09:00", "end_time": "17:00"}],
    [{"day_of_week": 1, "start_time": "17:00", "end_time": "09:00"}],
    [{"day_of_week": 1, "start_time": "nine", "end_time": "17:00"}],
    [
        {"day_of_week": 1, "start_time": "09:00", "end_time": "12:00"},
        {"day_of_week": 1, "start_time": "13:00", "end_time": "17:00"},
    ],
])
def test_replace_weekly_schedule_rejects_bad_rules(chicago_host, rules):
    host, _ = chicago_host
    with pytest.raises(ValidationError):
        replace_weekly_schedule(host.id, rules)
    # the previous schedule survives
    assert resolve_window(host.id, MONDAY) is not None


def test_unavailable_day_may_have_any_times(ctx, make_host):
    host = make_host()
    saved = replace_weekly_schedule(host.id, [
        {"day_of_week": 0, "start_time": "00:00", "end_time": "00:00", "is_available": False},
    ])
    assert len(saved) == 1


def test_default_weekly_rules_cover_weekdays(ctx, make_host):
    host = make_host()
    replace_weekly_schedule(host.id, default_weekly_rules())
    assert [r.day_of_week for r in weekly_schedule(host.id)] == [1, 2, 3, 4, 5]

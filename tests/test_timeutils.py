from datetime import date, datetime, time, timedelta

import pytest
import pytz

from slotbook import timeutils
from conftest import MONDAY, utc


def test_day_of_week_counts_from_sunday():
    assert timeutils.day_of_week(date(2030, 1, 6)) == 0
    assert timeutils.day_of_week(MONDAY) == 1
    assert timeutils.day_of_week(date(2030, 1, 12)) == 6


def test_local_to_utc_uses_host_zone():
    assert timeutils.local_to_utc(MONDAY, time(9, 0), "America/Chicago") == utc(2030, 1, 7, 15, 0)
    assert timeutils.local_to_utc(MONDAY, time(9, 0), "Asia/Tokyo") == utc(2030, 1, 7, 0, 0)


def test_local_to_utc_in_summer_time():
    assert timeutils.local_to_utc(date(2030, 7, 1), time(9, 0), "America/Chicago") == utc(2030, 7, 1, 14, 0)


def test_nonexistent_wall_time_is_pushed_forward():
    # 02:30 does not exist in Chicago on 2030-03-10
    instant = timeutils.local_to_utc(date(2030, 3, 10), time(2, 30), "America/Chicago")
    local = timeutils.utc_to_local(instant, "America/Chicago")
    assert local.hour == 3 and local.minute == 30


def test_local_day_bounds_on_dst_change_is_23_hours():
    start, end = timeutils.local_day_bounds(date(2030, 3, 10), "America/Chicago")
    assert end - start == timedelta(hours=23)
    assert start == utc(2030, 3, 10, 6, 0)


def test_unknown_zone_falls_back_to_default():
    assert timeutils.get_zone("Mars/Olympus_Mons").zone == timeutils.DEFAULT_TIMEZONE
    assert timeutils.get_zone(None).zone == "America/Chicago"
    assert not timeutils.is_valid_timezone("Mars/Olympus_Mons")
    assert timeutils.is_valid_timezone("Europe/Berlin")


def test_local_date_crosses_midnight():
    # 03:00 UTC Tuesday is still Monday evening in Chicago
    assert timeutils.local_date(utc(2030, 1, 8, 3, 0), "America/Chicago") == MONDAY


def test_parse_iso_datetime_variants():
    assert timeutils.parse_iso_datetime("2030-01-07T15:00:00Z") == utc(2030, 1, 7, 15, 0)
    assert timeutils.parse_iso_datetime("2030-01-07T09:00:00-06:00") == utc(2030, 1, 7, 15, 0)
    naive = timeutils.parse_iso_datetime("2030-01-07T15:00:00")
    assert naive.tzinfo is not None and naive == utc(2030, 1, 7, 15, 0)
    with pytest.raises(ValueError):
        timeutils.parse_iso_datetime("next tuesday")
    with pytest.raises(ValueError):
        timeutils.parse_iso_datetime("")


def test_parse_hhmm():
    assert timeutils.parse_hhmm("09:30") == time(9, 30)
    assert timeutils.parse_hhmm("17:00:00") == time(17, 0)
    with pytest.raises(ValueError):
        timeutils.parse_hhmm("9am")


def test_as_utc_and_naive_round_trip():
    naive = datetime(2030, 1, 7, 15, 0)
    aware = timeutils.as_utc(naive)
    assert aware.tzinfo == pytz.UTC
    assert timeutils.to_naive_utc(aware) == naive
    berlin = pytz.timezone("Europe/Berlin").localize(datetime(2030, 1, 7, 16, 0))
    assert timeutils.as_utc(berlin) == utc(2030, 1, 7, 15, 0)


def test_isoformat_utc_uses_z_suffix():
    assert timeutils.isoformat_utc(utc(2030, 1, 7, 15, 0)) == "2030-01-07T15:00:00Z"

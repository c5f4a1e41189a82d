from slotbook.scheduling.intervals import Interval, merge_intervals, overlaps
from conftest import utc


def test_touching_intervals_do_not_overlap():
    assert not overlaps(utc(2030, 1, 7, 9), utc(2030, 1, 7, 10), utc(2030, 1, 7, 10), utc(2030, 1, 7, 11))
    assert overlaps(utc(2030, 1, 7, 9), utc(2030, 1, 7, 10, 1), utc(2030, 1, 7, 10), utc(2030, 1, 7, 11))


def test_containment_overlaps():
    outer = Interval(utc(2030, 1, 7, 9), utc(2030, 1, 7, 12))
    assert outer.overlaps(utc(2030, 1, 7, 10), utc(2030, 1, 7, 11))


def test_merge_coalesces_overlapping_and_adjacent():
    merged = merge_intervals([
        Interval(utc(2030, 1, 7, 13), utc(2030, 1, 7, 14)),
        Interval(utc(2030, 1, 7, 9), utc(2030, 1, 7, 10)),
        Interval(utc(2030, 1, 7, 10), utc(2030, 1, 7, 11)),
        Interval(utc(2030, 1, 7, 10, 30), utc(2030, 1, 7, 10, 45)),
    ])
    assert merged == [
        Interval(utc(2030, 1, 7, 9), utc(2030, 1, 7, 11)),
        Interval(utc(2030, 1, 7, 13), utc(2030, 1, 7, 14)),
    ]


def test_merge_drops_empty_intervals():
    assert merge_intervals([Interval(utc(2030, 1, 7, 9), utc(2030, 1, 7, 9))]) == []


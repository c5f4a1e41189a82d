from datetime import datetime
from typing import Iterable, List, NamedTuple

from slotbook.timeutils import as_utc


class Interval(NamedTuple):
    """Half-open [start, end) span of UTC instants."""

    start: datetime
    end: datetime

    @classmethod
    def of(cls, start: datetime, end: datetime) -> "Interval":
        return cls(as_utc(start), as_utc(end))

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return overlaps(self.start, self.end, start, end)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # Touching endpoints do not conflict
    return a_start < b_end and b_start < a_end


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort and coalesce overlapping or adjacent intervals; empty ones are dropped."""
    ordered = sorted(i for i in intervals if i.end > i.start)
    merged: List[Interval] = []
    for current in ordered:
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


"""
Interval index for sliding-window overlap checks.

Three sorted lists: breaks (merged into disjoint ranges), time-off and
active bookings (kept one by one). Each list has its own scan pointer
that only moves forward while candidates arrive in non-decreasing start
order, so a whole day of candidates costs O(candidates + intervals).

An index instance belongs to a single availability call.
"""

from datetime import datetime
from typing import Iterable

from .types import BookingInterval, TimeRange


def merge_ranges(ranges: Iterable[TimeRange]) -> list[TimeRange]:
    """Sort and merge overlapping or touching ranges."""
    merged: list[TimeRange] = []
    for current in sorted(ranges, key=lambda r: (r.start, r.end)):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            if current.end > last.end:
                merged[-1] = TimeRange(last.start, current.end)
        else:
            merged.append(current)
    return merged


class _SortedScan:
    """Forward-only scan over ranges sorted by start."""

    def __init__(self, ranges: list[TimeRange]):
        self.ranges = ranges
        self.pos = 0

    def reset(self) -> None:
        self.pos = 0

    def hits(self, start: datetime, end: datetime) -> bool:
        ranges = self.ranges
        # Everything behind the pointer ended before an earlier candidate started
        while self.pos < len(ranges) and ranges[self.pos].end <= start:
            self.pos += 1

        for i in range(self.pos, len(ranges)):
            r = ranges[i]
            if r.start >= end:
                break  # sorted by start
            if start < r.end and r.start < end:
                return True
        return False


class IntervalIndex:
    """Blocked ranges of one specialist for one day."""

    def __init__(
        self,
        breaks: Iterable[TimeRange] = (),
        time_off: Iterable[TimeRange] = (),
        bookings: Iterable[BookingInterval | TimeRange] = (),
    ):
        self.breaks = merge_ranges(breaks)
        self.time_off = sorted(time_off, key=lambda r: (r.start, r.end))
        self.bookings = sorted(
            (
                TimeRange(b.start, b.end)
                for b in bookings
                if getattr(b, "is_active", True)
            ),
            key=lambda r: (r.start, r.end),
        )

        self._scans = {
            "break": _SortedScan(self.breaks),
            "time_off": _SortedScan(self.time_off),
            "booking": _SortedScan(self.bookings),
        }
        self._last_start: datetime | None = None

    def conflict(self, start: datetime, end: datetime) -> str | None:
        """Name of the first list blocking [start, end), or None if free."""
        if end <= start:
            raise ValueError(f"Candidate end must be after start: {start} → {end}")

        if self._last_start is not None and start < self._last_start:
            # Out-of-order candidate: rewind instead of missing a range
            for scan in self._scans.values():
                scan.reset()
        self._last_start = start

        for name, scan in self._scans.items():
            if scan.hits(start, end):
                return name
        return None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.conflict(start, end) is not None

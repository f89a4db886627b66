"""
Computed-grid slot generation.

For each working window: start at window.start, step by step_minutes of
wall-clock time, keep a candidate while start + total span still ends by
window.end, drop candidates that hit a break, time-off or booking, emit
the rest.

Window bounds, breaks and candidate starts are local wall-clock times of
the target date; the span is added to the start as real elapsed time, so
on clock-change days the slot length stays exact and the slot stays
inside its window.
"""

import logging
from collections import Counter
from datetime import date, datetime
from zoneinfo import ZoneInfo

from .intervals import IntervalIndex
from .types import (
    DayWindow,
    ServiceRequirement,
    Slot,
    TimeRange,
    local_instant,
)

logger = logging.getLogger(__name__)


def break_ranges(
    windows: list[DayWindow],
    target_date: date,
    tz: ZoneInfo,
) -> list[TimeRange]:
    """Breaks of all windows as absolute ranges on target_date."""
    ranges = []
    for window in windows:
        for br in window.breaks:
            start = local_instant(target_date, br.start_min, tz)
            end = local_instant(target_date, br.end_min, tz)
            # a break lying wholly inside a skipped hour has no length
            if end > start:
                ranges.append(TimeRange(start, end))
    return ranges


def generate_grid_slots(
    windows: list[DayWindow],
    requirement: ServiceRequirement,
    step_minutes: int,
    index: IntervalIndex,
    target_date: date,
    tz: ZoneInfo,
) -> list[Slot]:
    """
    Stepped-grid slots for one specialist/day.

    Returns:
        Slots ordered by start, unique starts. Empty list = nothing fits.

    Raises:
        ValueError: step_minutes <= 0
    """
    if step_minutes <= 0:
        raise ValueError(f"step_minutes must be positive, got {step_minutes}")

    span = requirement.total_span
    slots: list[Slot] = []
    seen: set[datetime] = set()
    blocked: Counter[str] = Counter()

    for window in sorted(windows, key=lambda w: (w.start_min, w.end_min)):
        window_start = local_instant(target_date, window.start_min, tz)
        window_end = local_instant(target_date, window.end_min, tz)

        for m in range(window.start_min, window.end_min, step_minutes):
            slot_start = local_instant(target_date, m, tz)
            slot_end = slot_start + span

            if slot_start < window_start or slot_end > window_end:
                continue
            if slot_start in seen:
                # overlapping windows, or two wall-clock labels of one instant
                continue

            reason = index.conflict(slot_start, slot_end)
            if reason is not None:
                blocked[reason] += 1
                continue

            slots.append(Slot(slot_start, slot_end))
            seen.add(slot_start)

    slots.sort(key=lambda s: s.start)

    logger.debug(
        f"Grid slots for {target_date}: {len(slots)} free, blocked={dict(blocked)} "
        f"(span={requirement.total_span_minutes}min, step={step_minutes}min, "
        f"windows={len(windows)})"
    )
    return slots

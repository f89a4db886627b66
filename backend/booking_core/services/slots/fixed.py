"""
Fixed-time slot generation.

Used when a service lists explicit start times (e.g. 09:15, 11:30, 16:00)
instead of a stepped grid. Each listed time is checked against breaks,
time-off and bookings exactly like grid candidates.

Fixed times are NOT required to fall inside the specialist's working
windows: the list itself defines when the service runs.

Times are evaluated in the order given. Duplicates are not removed and
the list is not sorted; duplicate input yields duplicate slots. Keeping
the list clean is the job of whoever edits the service.
"""

from datetime import date
from zoneinfo import ZoneInfo

from .config import time_str_to_minutes
from .intervals import IntervalIndex
from .types import ServiceRequirement, Slot, local_instant


def generate_fixed_slots(
    fixed_times: list[str] | tuple[str, ...],
    requirement: ServiceRequirement,
    index: IntervalIndex,
    target_date: date,
    tz: ZoneInfo,
) -> list[Slot]:
    """
    Slots for an explicit list of "HH:MM" start times.

    Raises:
        ValueError: a time string is not "HH:MM"
    """
    if not fixed_times:
        return []

    # Validate everything before producing anything
    minutes = [time_str_to_minutes(t) for t in fixed_times]

    span = requirement.total_span
    slots: list[Slot] = []

    for m in minutes:
        slot_start = local_instant(target_date, m, tz)
        slot_end = slot_start + span
        if not index.overlaps(slot_start, slot_end):
            slots.append(Slot(slot_start, slot_end))

    return slots

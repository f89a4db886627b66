"""Tests for computed-grid slot generation."""

from __future__ import annotations

from datetime import date, timedelta
from zoneinfo import ZoneInfo

import pytest

from booking_core.services.slots.calculator import break_ranges, generate_grid_slots
from booking_core.services.slots.intervals import IntervalIndex
from booking_core.services.slots.types import (
    BookingInterval,
    BreakWindow,
    DayWindow,
    ServiceRequirement,
    TimeRange,
)

from conftest import at

LONDON = ZoneInfo("Europe/London")
TUESDAY = date(2026, 3, 10)


def grid(windows, requirement, step=15, bookings=(), time_off=(), target=TUESDAY):
    index = IntervalIndex(
        breaks=break_ranges(windows, target, LONDON),
        time_off=time_off,
        bookings=bookings,
    )
    return generate_grid_slots(windows, requirement, step, index, target, LONDON)


def labels(slots) -> list[str]:
    return [s.label(LONDON) for s in slots]


def test_workday_with_lunch_break() -> None:
    windows = [DayWindow("09:00", "17:00", (BreakWindow("12:00", "13:00"),))]
    requirement = ServiceRequirement(60, buffer_after_minutes=10)

    slots = grid(windows, requirement)

    assert labels(slots) == [
        "09:00", "09:15", "09:30", "09:45", "10:00", "10:15", "10:30", "10:45",
        "13:00", "13:15", "13:30", "13:45", "14:00", "14:15", "14:30", "14:45",
        "15:00", "15:15", "15:30", "15:45",
    ]
    lunch = TimeRange(at("2026-03-10 12:00"), at("2026-03-10 13:00"))
    for slot in slots:
        assert slot.end - slot.start == timedelta(minutes=70)
        assert not lunch.overlaps(slot.start, slot.end)
    assert slots[-1].end <= at("2026-03-10 17:00")


def test_span_includes_buffers() -> None:
    windows = [DayWindow("09:00", "10:00")]
    requirement = ServiceRequirement(30, buffer_before_minutes=10, buffer_after_minutes=5)

    slots = grid(windows, requirement)

    assert labels(slots) == ["09:00", "09:15"]
    assert all(s.end - s.start == timedelta(minutes=45) for s in slots)


def test_bookings_and_time_off_block_candidates() -> None:
    windows = [DayWindow("09:00", "12:00")]
    slots = grid(
        windows,
        ServiceRequirement(30),
        step=30,
        bookings=[
            BookingInterval(at("2026-03-10 09:30"), at("2026-03-10 10:00")),
            BookingInterval(at("2026-03-10 10:00"), at("2026-03-10 10:30"), "cancelled_no_refund"),
        ],
        time_off=[TimeRange(at("2026-03-10 11:00"), at("2026-03-10 11:30"))],
    )
    assert labels(slots) == ["09:00", "10:00", "10:30", "11:30"]


def test_slots_never_overlap_each_other_when_step_covers_span() -> None:
    slots = grid([DayWindow("09:00", "13:00")], ServiceRequirement(45), step=45)
    for a, b in zip(slots, slots[1:]):
        assert a.end <= b.start


def test_multiple_windows_are_ordered_and_unique() -> None:
    windows = [DayWindow("14:00", "15:00"), DayWindow("09:00", "10:00"), DayWindow("09:30", "10:30")]
    slots = grid(windows, ServiceRequirement(30), step=30)

    assert labels(slots) == ["09:00", "09:30", "10:00", "14:00", "14:30"]
    assert slots == sorted(slots)


def test_span_longer_than_window_yields_nothing() -> None:
    assert grid([DayWindow("09:00", "10:00")], ServiceRequirement(61)) == []


def test_exact_fit() -> None:
    slots = grid([DayWindow("09:00", "10:00")], ServiceRequirement(60))
    assert labels(slots) == ["09:00"]


def test_window_until_midnight() -> None:
    slots = grid([DayWindow("23:00", "24:00")], ServiceRequirement(30), step=30)
    assert labels(slots) == ["23:00", "23:30"]
    assert slots[-1].end == at("2026-03-11 00:00")


@pytest.mark.parametrize("step", [0, -15])
def test_non_positive_step_raises(step) -> None:
    with pytest.raises(ValueError):
        grid([DayWindow("09:00", "10:00")], ServiceRequirement(30), step=step)


def test_deterministic() -> None:
    windows = [DayWindow("09:00", "17:00", (BreakWindow("12:00", "13:00"),))]
    requirement = ServiceRequirement(50)
    assert grid(windows, requirement) == grid(windows, requirement)


def test_spring_forward_keeps_real_span() -> None:
    # 2026-03-29: London clocks go from 01:00 GMT to 02:00 BST
    dst_day = date(2026, 3, 29)
    slots = grid([DayWindow("00:00", "04:00")], ServiceRequirement(60), step=60, target=dst_day)

    assert all(s.end - s.start == timedelta(minutes=60) for s in slots)
    # 01:00 does not exist and resolves to 02:00 BST; the 02:00 label is the same instant
    assert labels(slots) == ["00:00", "02:00", "03:00"]
    assert slots[-1].end == at("2026-03-29 04:00")


def test_spring_forward_afternoon_labels_match_wall_clock() -> None:
    dst_day = date(2026, 3, 29)
    windows = [DayWindow("09:00", "17:00", (BreakWindow("12:00", "13:00"),))]
    slots = grid(windows, ServiceRequirement(60), step=60, target=dst_day)

    assert labels(slots) == ["09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00"]
    assert slots[0].start == at("2026-03-29 09:00")
    assert slots[-1].end == at("2026-03-29 17:00")


def test_fall_back_labels_match_wall_clock() -> None:
    # 2026-10-25: London clocks go from 02:00 BST back to 01:00 GMT
    dst_day = date(2026, 10, 25)
    slots = grid([DayWindow("09:00", "17:00")], ServiceRequirement(60), step=60, target=dst_day)

    assert labels(slots) == ["09:00", "10:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00"]
    assert all(s.end - s.start == timedelta(minutes=60) for s in slots)
    assert slots[-1].end == at("2026-10-25 17:00")


def test_fall_back_break_stays_on_wall_clock() -> None:
    dst_day = date(2026, 10, 25)
    windows = [DayWindow("09:00", "17:00", (BreakWindow("12:00", "13:00"),))]
    ranges = break_ranges(windows, dst_day, LONDON)
    assert [(r.start, r.end) for r in ranges] == [
        (at("2026-10-25 12:00"), at("2026-10-25 13:00")),
    ]


def test_break_ranges_cover_every_window() -> None:
    windows = [
        DayWindow("09:00", "12:00", (BreakWindow("10:00", "10:15"),)),
        DayWindow("13:00", "18:00", (BreakWindow("15:00", "15:30"), BreakWindow("16:00", "16:10"))),
    ]
    ranges = break_ranges(windows, TUESDAY, LONDON)
    assert [(r.start, r.end) for r in ranges] == [
        (at("2026-03-10 10:00"), at("2026-03-10 10:15")),
        (at("2026-03-10 15:00"), at("2026-03-10 15:30")),
        (at("2026-03-10 16:00"), at("2026-03-10 16:10")),
    ]


def test_debug_summary_counts_blocking_lists(caplog) -> None:
    windows = [DayWindow("09:00", "12:00", (BreakWindow("10:00", "10:30"),))]
    bookings = [BookingInterval(at("2026-03-10 11:00"), at("2026-03-10 11:30"))]

    with caplog.at_level("DEBUG", logger="booking_core.services.slots.calculator"):
        slots = grid(windows, ServiceRequirement(30), step=30, bookings=bookings)

    assert labels(slots) == ["09:00", "09:30", "10:30", "11:30"]
    assert "blocked={'break': 1, 'booking': 1}" in caplog.text

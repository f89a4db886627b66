"""
Service availability for a specialist on a day.

Picks the generation mode per service:
- fixed_times present → fixed-time list (empty list = not bookable)
- otherwise           → stepped grid across the resolved working windows

Then drops slots that already started when the date is "today" in the
salon timezone. No other post-processing.

An empty result is normal: closed day, fully booked or not bookable.
Inspect ScheduleResolver output to tell "closed" from "fully booked".
"""

import logging
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy.orm import Session

from ...schemas.slots import FullyBookedResponse, SlotInfo, SlotsDayResponse
from ..clock import Clock
from .calculator import break_ranges, generate_grid_slots
from .config import BookingConfig, get_booking_config
from .fixed import generate_fixed_slots
from .intervals import IntervalIndex
from .invalidator import get_affected_dates
from .loader import (
    get_specialist_services,
    load_service_requirement,
    load_specialist_snapshot,
    service_requirement_from_row,
    snapshot_for_day,
)
from .schedule import ScheduleResolver
from .types import BookingInterval, ServiceRequirement, Slot, SpecialistSnapshot, TimeRange

logger = logging.getLogger(__name__)


def calculate_service_availability(
    snapshot: SpecialistSnapshot,
    requirement: ServiceRequirement,
    target_date: date,
    *,
    config: BookingConfig | None = None,
    clock: Clock | None = None,
    resolver: ScheduleResolver | None = None,
    extra_blackouts: Iterable[TimeRange] = (),
) -> list[Slot]:
    """
    Bookable slots for one specialist/service/date.

    Args:
        snapshot: Pre-fetched schedule, overrides, time-off and bookings
        requirement: Duration/buffers and optional fixed times
        target_date: Local date in the salon timezone
        config: Step size and timezone
        clock: Source of "now" (salon timezone)
        resolver: Schedule resolver, possibly cache-backed
        extra_blackouts: Additional ranges that block like bookings

    Returns:
        Slots ordered as generated. Empty list is a valid result.
    """
    config = config or get_booking_config()
    clock = clock or Clock(config.tz)
    resolver = resolver or ScheduleResolver()
    tz = config.tz

    if not snapshot.active:
        return []

    if requirement.fixed_times is not None and not requirement.fixed_times:
        # explicitly unbookable
        return []

    windows = resolver.resolve(
        snapshot.weekly,
        snapshot.overrides,
        target_date,
        specialist_id=snapshot.specialist_id,
    )

    bookings = list(snapshot.bookings) + [
        BookingInterval(b.start, b.end, "confirmed") for b in extra_blackouts
    ]
    index = IntervalIndex(
        breaks=break_ranges(windows, target_date, tz),
        time_off=snapshot.time_off,
        bookings=bookings,
    )

    if requirement.fixed_times is not None:
        slots = generate_fixed_slots(requirement.fixed_times, requirement, index, target_date, tz)
    else:
        if not windows:
            return []
        slots = generate_grid_slots(
            windows, requirement, config.slot_step_minutes, index, target_date, tz
        )

    now = clock.now()
    if target_date == now.astimezone(tz).date():
        slots = [s for s in slots if s.start > now]

    return slots


# ── Database-backed entry points ─────────────────────────────────────────


def get_day_availability(
    db: Session,
    specialist_id: int,
    service_id: int,
    target_date: date,
    config: BookingConfig | None = None,
    clock: Clock | None = None,
    resolver: ScheduleResolver | None = None,
) -> SlotsDayResponse:
    """Load the snapshot for one day and compute slots (SlotsDayResponse)."""
    config = config or get_booking_config()
    clock = clock or Clock(config.tz)
    tz = config.tz

    requirement = load_service_requirement(db, service_id)
    snapshot = load_specialist_snapshot(db, specialist_id, target_date, config=config, now=clock.now())

    if requirement is None or snapshot is None:
        return SlotsDayResponse(
            specialist_id=specialist_id,
            service_id=service_id,
            date=target_date,
            mode="grid",
            total_span_minutes=0,
            slots=[],
        )

    slots = calculate_service_availability(
        snapshot,
        requirement,
        target_date,
        config=config,
        clock=clock,
        resolver=resolver,
    )

    return SlotsDayResponse(
        specialist_id=specialist_id,
        service_id=service_id,
        date=target_date,
        mode="fixed" if requirement.fixed_times is not None else "grid",
        total_span_minutes=requirement.total_span_minutes,
        slots=[
            SlotInfo(
                start=s.start,
                end=s.end,
                start_time=s.label(tz),
                end_time=s.end.astimezone(tz).strftime("%H:%M"),
            )
            for s in slots
        ],
    )


def find_fully_booked_dates(
    db: Session,
    specialist_id: int,
    year: int,
    month: int,
    config: BookingConfig | None = None,
    clock: Clock | None = None,
    resolver: ScheduleResolver | None = None,
) -> FullyBookedResponse:
    """
    Dates of a month on which none of the specialist's services has a slot.

    Past dates and closed dates count as fully booked. The month's
    bookings, time-off and overrides are loaded once.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")

    config = config or get_booking_config()
    clock = clock or Clock(config.tz)
    tz = config.tz

    month_start = date(year, month, 1)
    next_month = date(year + (month == 12), month % 12 + 1, 1)
    month_end = next_month - timedelta(days=1)
    dates = get_affected_dates(month_start, month_end)

    snapshot = load_specialist_snapshot(
        db, specialist_id, month_start, month_end, config=config, now=clock.now()
    )
    services = get_specialist_services(db, specialist_id) if snapshot else []

    if snapshot is None or not services:
        return FullyBookedResponse(
            specialist_id=specialist_id, year=year, month=month, fully_booked=dates
        )

    requirements = [service_requirement_from_row(s) for s in services]
    today = clock.now().astimezone(tz).date()
    fully_booked = []

    for dt in dates:
        if dt < today:
            fully_booked.append(dt)
            continue

        day_snapshot = snapshot_for_day(snapshot, dt, tz)
        has_slots = any(
            calculate_service_availability(
                day_snapshot, req, dt, config=config, clock=clock, resolver=resolver
            )
            for req in requirements
        )
        if not has_slots:
            fully_booked.append(dt)

    logger.info(
        f"Fully booked scan: specialist={specialist_id} {year}-{month:02d} "
        f"→ {len(fully_booked)}/{len(dates)} days"
    )

    return FullyBookedResponse(
        specialist_id=specialist_id, year=year, month=month, fully_booked=fully_booked
    )

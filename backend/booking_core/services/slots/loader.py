"""
Database snapshot loading for the availability engine.

Everything here is read-only: it turns stored rows into the value types
the generators work on.
"""

import json
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ...database import from_db_ts, to_db_ts
from .config import BookingConfig, get_booking_config
from .schedule import parse_override_windows, parse_weekly_schedule
from .types import (
    BookingInterval,
    ServiceRequirement,
    SpecialistSnapshot,
    TimeRange,
    day_base,
)


RESERVED_UNPAID = "reserved_unpaid"


def load_service_requirement(db: Session, service_id: int) -> ServiceRequirement | None:
    """Active service → ServiceRequirement, or None if missing/inactive."""
    service = _get_service(db, service_id)
    if not service:
        return None
    return service_requirement_from_row(service)


def service_requirement_from_row(service) -> ServiceRequirement:
    fixed_times = None
    if service.fixed_times is not None:
        data = json.loads(service.fixed_times)
        if not isinstance(data, list):
            raise ValueError(f"Service {service.id}: fixed_times must be a list")
        fixed_times = tuple(data)

    return ServiceRequirement(
        duration_minutes=service.duration_min,
        buffer_before_minutes=service.buffer_before_min or 0,
        buffer_after_minutes=service.buffer_after_min or 0,
        fixed_times=fixed_times,
    )


def load_specialist_snapshot(
    db: Session,
    specialist_id: int,
    date_start: date,
    date_end: date | None = None,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> SpecialistSnapshot | None:
    """
    Schedule, overrides, time-off and active bookings for [date_start, date_end].

    One query per table regardless of range length, so month scans stay cheap.
    Returns None when the specialist does not exist.
    """
    config = config or get_booking_config()
    date_end = date_end or date_start
    now = now or datetime.now(config.tz)

    specialist = _get_specialist(db, specialist_id)
    if not specialist:
        return None

    # Local day bounds, widened by a day for bookings/time-off crossing midnight
    range_start = day_base(date_start - timedelta(days=1), config.tz)
    range_end = day_base(date_end + timedelta(days=2), config.tz)

    overrides = {
        date.fromisoformat(str(o.date)[:10]): parse_override_windows(o.windows)
        for o in _get_overrides(db, specialist_id, date_start, date_end)
    }

    time_off = [
        TimeRange(from_db_ts(t.date_start), from_db_ts(t.date_end))
        for t in _get_time_off(db, specialist_id, range_start, range_end)
    ]

    hold_cutoff = now - timedelta(minutes=config.reserved_unpaid_hold_minutes)
    bookings = [
        BookingInterval(from_db_ts(b.date_start), from_db_ts(b.date_end), b.status)
        for b in _get_active_bookings(db, specialist_id, range_start, range_end)
        if not _is_lapsed_reservation(b, hold_cutoff)
    ]

    return SpecialistSnapshot(
        specialist_id=specialist.id,
        weekly=parse_weekly_schedule(specialist.work_schedule),
        overrides=overrides,
        time_off=time_off,
        bookings=bookings,
        active=specialist.is_active != 0,
    )


def _is_lapsed_reservation(booking, hold_cutoff: datetime) -> bool:
    """Unpaid reservations only block for a short hold after creation."""
    if booking.status != RESERVED_UNPAID:
        return False
    return from_db_ts(booking.created_at) < hold_cutoff


def snapshot_for_day(snapshot: SpecialistSnapshot, target_date: date, tz) -> SpecialistSnapshot:
    """Narrow a multi-day snapshot to what can touch target_date."""
    lo = day_base(target_date - timedelta(days=1), tz)
    hi = day_base(target_date + timedelta(days=2), tz)
    return SpecialistSnapshot(
        specialist_id=snapshot.specialist_id,
        weekly=snapshot.weekly,
        overrides={d: w for d, w in snapshot.overrides.items() if d == target_date},
        time_off=[t for t in snapshot.time_off if t.overlaps(lo, hi)],
        bookings=[b for b in snapshot.bookings if b.start < hi and lo < b.end],
        active=snapshot.active,
    )


# ── Database helpers ─────────────────────────────────────────────────────


def _get_specialist(db: Session, specialist_id: int):
    """Get specialist by ID."""
    from ...models.generated import Specialists
    return db.get(Specialists, specialist_id)


def _get_service(db: Session, service_id: int):
    """Get active service by ID."""
    from ...models.generated import Services
    return db.query(Services).filter(
        Services.id == service_id,
        Services.is_active == 1
    ).first()


def get_specialist_services(db: Session, specialist_id: int) -> list:
    """Active services the specialist provides."""
    from ...models.generated import Services, t_specialist_services

    return (
        db.query(Services)
        .join(
            t_specialist_services,
            Services.id == t_specialist_services.c.service_id
        )
        .filter(
            t_specialist_services.c.specialist_id == specialist_id,
            t_specialist_services.c.is_active == 1,
            Services.is_active == 1,
        )
        .order_by(Services.id)
        .all()
    )


def _get_overrides(db: Session, specialist_id: int, date_start: date, date_end: date) -> list:
    """Schedule overrides of specialist within the date range."""
    from ...models.generated import ScheduleOverrides

    return (
        db.query(ScheduleOverrides)
        .filter(
            ScheduleOverrides.specialist_id == specialist_id,
            ScheduleOverrides.date >= date_start.isoformat(),
            ScheduleOverrides.date <= date_end.isoformat(),
        )
        .all()
    )


def _get_time_off(db: Session, specialist_id: int, start: datetime, end: datetime) -> list:
    """Time-off periods overlapping [start, end)."""
    from ...models.generated import TimeOff

    return (
        db.query(TimeOff)
        .filter(
            TimeOff.specialist_id == specialist_id,
            TimeOff.date_start < to_db_ts(end),
            TimeOff.date_end > to_db_ts(start),
        )
        .all()
    )


def _get_active_bookings(db: Session, specialist_id: int, start: datetime, end: datetime) -> list:
    """Non-cancelled bookings overlapping [start, end)."""
    from ...models.generated import Bookings

    return (
        db.query(Bookings)
        .filter(
            Bookings.specialist_id == specialist_id,
            Bookings.date_start < to_db_ts(end),
            Bookings.date_end > to_db_ts(start),
            ~Bookings.status.like("cancelled%"),
        )
        .order_by(Bookings.date_start)
        .all()
    )

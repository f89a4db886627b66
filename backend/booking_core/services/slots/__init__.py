# backend/booking_core/services/slots/__init__.py
"""
Slots calculation module.

ScheduleResolver → IntervalIndex → grid / fixed-time generator → facade.
Resolved day schedules may be cached in Redis (ScheduleRedisCache).
"""

from .config import BookingConfig, get_booking_config
from .types import (
    BookingInterval,
    BreakWindow,
    DayWindow,
    ServiceRequirement,
    Slot,
    SpecialistSnapshot,
    TimeRange,
)
from .intervals import IntervalIndex
from .schedule import ScheduleResolver, parse_weekly_schedule
from .calculator import generate_grid_slots
from .fixed import generate_fixed_slots
from .schedule_cache import ScheduleRedisCache
from .invalidator import invalidate_specialist_schedule
from .availability import (
    calculate_service_availability,
    find_fully_booked_dates,
    get_day_availability,
)

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "BookingInterval",
    "BreakWindow",
    "DayWindow",
    "ServiceRequirement",
    "Slot",
    "SpecialistSnapshot",
    "TimeRange",
    "IntervalIndex",
    "ScheduleResolver",
    "parse_weekly_schedule",
    "generate_grid_slots",
    "generate_fixed_slots",
    "ScheduleRedisCache",
    "invalidate_specialist_schedule",
    "calculate_service_availability",
    "find_fully_booked_dates",
    "get_day_availability",
]

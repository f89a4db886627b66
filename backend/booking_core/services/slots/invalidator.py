"""
Cache invalidation for resolved specialist schedules.

Triggers:
✓ Specialist work_schedule changed → invalidate all dates
✓ Schedule override created/updated/deleted → invalidate that date

Does NOT trigger:
✗ Booking created/cancelled (bookings are never cached)
✗ Time-off changes (time-off is applied per call, not cached)
"""

import logging
from datetime import date, timedelta

from redis import Redis

from .schedule_cache import ScheduleRedisCache

logger = logging.getLogger(__name__)


def invalidate_specialist_schedule(
    cache: ScheduleRedisCache | Redis,
    specialist_id: int,
    dates: list[date] | None = None,
) -> int:
    """
    Invalidate cached day schedules for a specialist.

    Args:
        cache: ScheduleRedisCache, or a bare Redis client
        specialist_id: Specialist ID
        dates: List of specific dates to invalidate,
               or None to invalidate all cached dates

    Returns:
        Number of deleted cache keys
    """
    store = cache if isinstance(cache, ScheduleRedisCache) else ScheduleRedisCache(cache)
    deleted = store.delete_windows(specialist_id, dates)
    logger.info(
        f"Schedule cache invalidated: specialist={specialist_id} "
        f"dates={'all' if not dates else len(dates)} deleted={deleted}"
    )
    return deleted


def get_affected_dates(date_start: date, date_end: date) -> list[date]:
    """Every date from date_start to date_end inclusive (order of arguments does not matter)."""
    lo, hi = sorted((date_start, date_end))
    return [lo + timedelta(days=i) for i in range((hi - lo).days + 1)]

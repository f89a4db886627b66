"""
Redis storage for resolved day schedules.

Key format: schedule:day:{specialist_id}:{date}
Value: JSON list of day windows. "[]" marks "resolved, closed day" so a
closed day is still a cache hit.

Entries expire after cache_ttl_seconds and are deleted explicitly by
invalidator.invalidate_specialist_schedule() on schedule changes.
"""

import json
from datetime import date

from redis import Redis

from ...schemas.schedule import DayWindowSchema
from .config import BookingConfig, get_booking_config
from .schedule import to_day_window
from .types import DayWindow


class ScheduleRedisCache:
    """Redis wrapper caching ScheduleResolver output per specialist/date."""

    KEY_PREFIX = "schedule:day"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, specialist_id: int, dt: date) -> str:
        return f"{self.KEY_PREFIX}:{specialist_id}:{dt.isoformat()}"

    # ── Write ────────────────────────────────────────────────────────────

    def store_windows(
        self,
        specialist_id: int,
        dt: date,
        windows: list[DayWindow],
    ) -> None:
        payload = json.dumps([w.to_dict() for w in windows])
        self.redis.set(
            self._key(specialist_id, dt),
            payload,
            ex=self.config.cache_ttl_seconds,
        )

    # ── Read ─────────────────────────────────────────────────────────────

    def get_windows(self, specialist_id: int, dt: date) -> list[DayWindow] | None:
        """
        Cached windows for a day.

        Returns:
            List of DayWindow (possibly empty = closed), or None on cache miss.
        """
        raw = self.redis.get(self._key(specialist_id, dt))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        return [to_day_window(DayWindowSchema.model_validate(item)) for item in json.loads(raw)]

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_windows(
        self,
        specialist_id: int,
        dates: list[date] | None = None,
    ) -> int:
        """
        Delete cached windows.

        Args:
            specialist_id: Specialist ID
            dates: Specific dates, or None to delete every cached date.

        Returns:
            Number of deleted keys.
        """
        if dates:
            keys = [self._key(specialist_id, dt) for dt in dates]
        else:
            pattern = f"{self.KEY_PREFIX}:{specialist_id}:*"
            keys = list(self.redis.scan_iter(match=pattern))

        if not keys:
            return 0

        return self.redis.delete(*keys)

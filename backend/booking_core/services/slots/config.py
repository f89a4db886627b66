"""
Booking configuration for slots calculation.
"""

from dataclasses import dataclass
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...config import settings
from ...schemas.schedule import time_str_to_minutes


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the availability engine.

    Attributes:
        salon_tz: IANA timezone of the tenant (wall-clock of schedules)
        slot_step_minutes: Grid step in minutes for computed slots
        cache_ttl_seconds: Redis TTL for resolved day schedules
        reserved_unpaid_hold_minutes: How long an unpaid reservation blocks
    """
    salon_tz: str = "Europe/London"
    slot_step_minutes: int = 15
    cache_ttl_seconds: int = 86400  # 24 hours
    reserved_unpaid_hold_minutes: int = 3

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes <= 0:
            raise ValueError(f"slot_step_minutes must be positive, got {self.slot_step_minutes}")
        if self.cache_ttl_seconds <= 0:
            raise ValueError(f"cache_ttl_seconds must be positive, got {self.cache_ttl_seconds}")
        try:
            ZoneInfo(self.salon_tz)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {self.salon_tz!r}") from e

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.salon_tz)


@lru_cache
def get_booking_config() -> BookingConfig:
    """Booking configuration built from application settings (singleton)."""
    return BookingConfig(
        salon_tz=settings.salon_tz,
        slot_step_minutes=settings.slot_step_minutes,
        cache_ttl_seconds=settings.schedule_cache_ttl_seconds,
        reserved_unpaid_hold_minutes=settings.reserved_unpaid_hold_minutes,
    )

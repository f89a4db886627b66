"""
Value types shared by the availability engine.

All instants are timezone-aware. Day windows and breaks are local
wall-clock "HH:MM" strings, interpreted in the salon timezone of the
target date.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .config import time_str_to_minutes


CANCELLED_PREFIX = "cancelled"


def is_cancelled_status(status: str | None) -> bool:
    """cancelled, cancelled_no_refund, cancelled_partial_refund, ..."""
    return isinstance(status, str) and status.startswith(CANCELLED_PREFIX)


def day_base(target_date: date, tz: ZoneInfo) -> datetime:
    """UTC instant of local midnight of target_date."""
    return datetime.combine(target_date, time.min, tzinfo=tz).astimezone(timezone.utc)


def local_instant(target_date: date, minutes: int, tz: ZoneInfo) -> datetime:
    """
    Wall-clock minute of target_date in tz → UTC instant.

    1440 ("24:00") is the next day's midnight. A time skipped by a
    spring-forward jump resolves with the offset in force before the jump
    (fold=0), so 01:30 on a GMT→BST day lands at 02:30 BST.
    """
    if minutes == 24 * 60:
        return day_base(target_date + timedelta(days=1), tz)
    hour, minute = divmod(minutes, 60)
    return datetime.combine(target_date, time(hour, minute), tzinfo=tz).astimezone(timezone.utc)


@dataclass(frozen=True, order=True)
class TimeRange:
    """Half-open [start, end) range of aware instants."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError(f"TimeRange needs aware datetimes: {self.start!r}, {self.end!r}")
        if self.end <= self.start:
            raise ValueError(f"TimeRange end must be after start: {self.start} → {self.end}")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and self.start < end


@dataclass(frozen=True)
class BreakWindow:
    start: str
    end: str

    def __post_init__(self):
        if time_str_to_minutes(self.end) <= time_str_to_minutes(self.start):
            raise ValueError(f"Break end must be after start: {self.start}-{self.end}")

    @property
    def start_min(self) -> int:
        return time_str_to_minutes(self.start)

    @property
    def end_min(self) -> int:
        return time_str_to_minutes(self.end)


@dataclass(frozen=True)
class DayWindow:
    """A single working period on a date: start/end plus breaks."""
    start: str
    end: str
    breaks: tuple[BreakWindow, ...] = ()

    def __post_init__(self):
        if time_str_to_minutes(self.end) <= time_str_to_minutes(self.start):
            raise ValueError(f"Window end must be after start: {self.start}-{self.end}")

    @property
    def start_min(self) -> int:
        return time_str_to_minutes(self.start)

    @property
    def end_min(self) -> int:
        return time_str_to_minutes(self.end)

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "breaks": [{"start": b.start, "end": b.end} for b in self.breaks],
        }


@dataclass(frozen=True)
class BookingInterval:
    start: datetime
    end: datetime
    status: str = "confirmed"

    @property
    def is_active(self) -> bool:
        return not is_cancelled_status(self.status)


@dataclass(frozen=True)
class ServiceRequirement:
    """
    Duration/buffer rules of a service.

    fixed_times=None → computed grid; fixed_times=() → service not bookable.
    """
    duration_minutes: int
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    fixed_times: tuple[str, ...] | None = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {self.duration_minutes}")
        if self.buffer_before_minutes < 0 or self.buffer_after_minutes < 0:
            raise ValueError("Buffers cannot be negative")

    @property
    def total_span_minutes(self) -> int:
        return self.duration_minutes + self.buffer_before_minutes + self.buffer_after_minutes

    @property
    def total_span(self) -> timedelta:
        return timedelta(minutes=self.total_span_minutes)


@dataclass(frozen=True, order=True)
class Slot:
    start: datetime
    end: datetime

    def label(self, tz: ZoneInfo) -> str:
        return self.start.astimezone(tz).strftime("%H:%M")


@dataclass(frozen=True)
class SpecialistSnapshot:
    """Read-only, pre-fetched scheduling state of one specialist."""
    specialist_id: int
    weekly: dict[int, list[DayWindow]] = field(default_factory=dict)
    overrides: dict[date, list[DayWindow]] = field(default_factory=dict)
    time_off: list[TimeRange] = field(default_factory=list)
    bookings: list[BookingInterval] = field(default_factory=list)
    active: bool = True

"""
Schedule resolution: which working windows apply on a date.

A date-specific override wins outright (an empty override = closed that
day); otherwise the weekly pattern for the date's weekday applies.

Day-of-week keys are normalised here to date.weekday() numbers
(0 = Monday ... 6 = Sunday). Numeric keys in stored schedules count from
Sunday (0 = Sunday ... 6 = Saturday); day names are unambiguous. Stored
schedules may use any of:
  {"0": {...}}, {0: [...]}, {"mon": {...}}, {"monday": {...}}
with a value of null, one window object, a list of window objects or
a list of ["HH:MM", "HH:MM"] pairs.
"""

import json
import logging
from datetime import date
from typing import Any

from ...schemas.schedule import DayWindowSchema
from .types import BreakWindow, DayWindow

logger = logging.getLogger(__name__)

DAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
DAY_NAMES_FULL = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def normalize_weekday(key: Any) -> int:
    """Map 0..6 / "0".."6" (0 = Sunday), "mon", "Monday", ... to date.weekday()."""
    if isinstance(key, bool):
        raise ValueError(f"Invalid day-of-week key: {key!r}")
    if isinstance(key, int):
        if 0 <= key <= 6:
            return (key - 1) % 7
        raise ValueError(f"Day-of-week out of range: {key!r}")
    if isinstance(key, str):
        k = key.strip().lower()
        if k.isdigit():
            return normalize_weekday(int(k))
        if k in DAY_NAMES:
            return DAY_NAMES.index(k)
        if k in DAY_NAMES_FULL:
            return DAY_NAMES_FULL.index(k)
    raise ValueError(f"Invalid day-of-week key: {key!r}")


def to_day_window(schema: DayWindowSchema) -> DayWindow:
    return DayWindow(
        start=schema.start,
        end=schema.end,
        breaks=tuple(BreakWindow(b.start, b.end) for b in schema.breaks),
    )


def parse_day_windows(value: Any) -> list[DayWindow]:
    """One stored day value → list of DayWindow (empty = closed)."""
    if value is None:
        return []
    if isinstance(value, dict):
        items = [value]
    elif isinstance(value, list):
        items = value
    else:
        raise ValueError(f"Invalid day schedule: {value!r}")

    windows = [to_day_window(DayWindowSchema.model_validate(item)) for item in items]
    return sorted(windows, key=lambda w: w.start_min)


def parse_weekly_schedule(raw: str | dict | None) -> dict[int, list[DayWindow]]:
    """Stored work_schedule (JSON text or dict) → {weekday: windows}."""
    if raw is None or raw == "":
        return {}
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise ValueError(f"work_schedule must be an object, got {type(data).__name__}")

    weekly: dict[int, list[DayWindow]] = {}
    for key, value in data.items():
        day = normalize_weekday(key)
        if day in weekly:
            raise ValueError(f"Duplicate schedule entry for weekday {day} ({key!r})")
        weekly[day] = parse_day_windows(value)
    return weekly


def parse_override_windows(raw: str | list | None) -> list[DayWindow]:
    """Stored schedule_overrides.windows → list of DayWindow."""
    if raw is None or raw == "":
        return []
    data = json.loads(raw) if isinstance(raw, str) else raw
    return parse_day_windows(data)


class ScheduleResolver:
    """
    Resolves working windows for a date.

    cache: optional ScheduleRedisCache; entries must be invalidated by
    the caller when the specialist's schedule or overrides change.
    """

    def __init__(self, cache=None):
        self.cache = cache

    def resolve(
        self,
        weekly: dict[int, list[DayWindow]],
        overrides: dict[date, list[DayWindow]],
        target_date: date,
        specialist_id: int | None = None,
    ) -> list[DayWindow]:
        use_cache = self.cache is not None and specialist_id is not None

        if use_cache:
            cached = self.cache.get_windows(specialist_id, target_date)
            if cached is not None:
                logger.debug(f"Schedule cache hit: specialist={specialist_id} date={target_date}")
                return cached

        if target_date in overrides:
            windows = list(overrides[target_date])
        else:
            windows = list(weekly.get(target_date.weekday()) or [])

        if use_cache:
            self.cache.store_windows(specialist_id, target_date, windows)

        return windows

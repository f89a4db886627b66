# backend/booking_core/schemas/schedule.py
"""
Pydantic schemas for stored schedule JSON (specialists.work_schedule,
schedule_overrides.windows).
"""

import re

from pydantic import BaseModel, field_validator, model_validator

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def time_str_to_minutes(value: str) -> int:
    """'09:30' → 570. Raises ValueError on anything that is not HH:MM."""
    if not isinstance(value, str):
        raise ValueError(f"Time must be a 'HH:MM' string, got {value!r}")
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Malformed time {value!r}, expected 'HH:MM'")
    hour, minute = int(match.group(1)), int(match.group(2))
    if minute > 59 or hour > 24 or (hour == 24 and minute != 0):
        raise ValueError(f"Time out of range: {value!r}")
    return hour * 60 + minute


class BreakSchema(BaseModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def check_time(cls, v: str) -> str:
        time_str_to_minutes(v)
        return v.strip()

    @model_validator(mode="before")
    @classmethod
    def accept_pair(cls, data):
        # ["12:00", "13:00"] is accepted as well as {"start": ..., "end": ...}
        if isinstance(data, (list, tuple)):
            if len(data) != 2:
                raise ValueError(f"Time pair must have 2 items, got {data!r}")
            return {"start": data[0], "end": data[1]}
        return data

    @model_validator(mode="after")
    def check_order(self):
        if time_str_to_minutes(self.end) <= time_str_to_minutes(self.start):
            raise ValueError(f"End must be after start: {self.start}-{self.end}")
        return self

    model_config = {"from_attributes": True}


class DayWindowSchema(BreakSchema):
    breaks: list[BreakSchema] = []

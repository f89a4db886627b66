# backend/booking_core/schemas/slots.py
"""
Pydantic schemas for availability results.
"""

from datetime import date, datetime
from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    """A single bookable slot."""
    start: datetime
    end: datetime
    start_time: str  # "HH:MM", salon time
    end_time: str

    model_config = {"from_attributes": True}


class SlotsDayResponse(BaseModel):
    """Available slots of one specialist/service on one day."""
    specialist_id: int
    service_id: int
    date: date
    mode: str = Field(description="'grid' or 'fixed'")
    total_span_minutes: int
    slots: list[SlotInfo]

    model_config = {"from_attributes": True}


class FullyBookedResponse(BaseModel):
    """Dates of a month without any free slot."""
    specialist_id: int
    year: int
    month: int
    fully_booked: list[date]

    model_config = {"from_attributes": True}

# backend/booking_core/schemas/waitlist.py

from typing import Optional
from pydantic import BaseModel


class AutoFillResult(BaseModel):
    """Outcome of one waitlist auto-fill attempt."""
    filled: bool
    reason: Optional[str] = None

    booking_id: Optional[int] = None
    waitlist_entry_id: Optional[int] = None

    # entries claimed and released again during this attempt
    skipped_entry_ids: list[int] = []
    notification_failures: list[str] = []

    model_config = {"from_attributes": True}

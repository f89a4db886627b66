# backend/booking_core/services/waitlist/__init__.py
"""
Waitlist auto-fill: turns a cancelled slot into a booking for the
longest-waiting eligible client.
"""

from .stores import (
    BookingRecord,
    SlotTakenError,
    SqlBookingStore,
    SqlWaitlistStore,
    WaitlistCandidate,
)
from .autofill import WaitlistAutoFill, autofill_cancelled_booking

__all__ = [
    "BookingRecord",
    "SlotTakenError",
    "SqlBookingStore",
    "SqlWaitlistStore",
    "WaitlistCandidate",
    "WaitlistAutoFill",
    "autofill_cancelled_booking",
]

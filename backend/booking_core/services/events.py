"""
backend/booking_core/services/events.py

Event emitter: pushes notification events to a Redis queue consumed by
the email/SMS workers.

Queue:
- events:p2p: instant delivery (booking confirmations, waitlist fills)

Emitting never raises: a failed push is logged and reported as False,
the booking that triggered it stays as it is.
"""

import json
import time
import logging

from redis import Redis

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"

BOOKING_CONFIRMATION = "booking_confirmation_email"
WAITLIST_FILL_NOTICE = "waitlist_fill_sms"


def emit_event(redis: Redis, event_type: str, payload: dict) -> bool:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.
    Returns True when the event was queued.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis.rpush(P2P_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
        return True
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
        return False


class NotificationDispatcher:
    """Fire-and-forget booking notifications over the event queue."""

    def __init__(self, redis: Redis, salon_tz: str = "Europe/London"):
        self.redis = redis
        self.salon_tz = salon_tz

    def send_booking_confirmation(self, booking: dict, contact: dict) -> bool:
        if not contact.get("email"):
            return True  # nothing to send
        return emit_event(self.redis, BOOKING_CONFIRMATION, {
            "booking": booking,
            "to": contact["email"],
            "name": contact.get("name"),
        })

    def send_waitlist_fill_notice(self, booking: dict, contact: dict) -> bool:
        if not contact.get("phone"):
            return True
        return emit_event(self.redis, WAITLIST_FILL_NOTICE, {
            "booking": booking,
            "to": contact["phone"],
            "name": contact.get("name"),
            "tz": self.salon_tz,
        })

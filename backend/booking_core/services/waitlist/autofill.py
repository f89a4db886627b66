"""
Waitlist auto-fill.

Triggered once per cancelled booking. Walks waiting entries oldest
first, claims one atomically, re-checks that the client is free and the
slot is still free, then creates the replacement booking and marks the
entry fulfilled in one transaction.

Outcomes:
- filled
- appointment_not_found / appointment_not_cancelled (trigger no-ops)
- no_waitlist_candidates (nobody waiting for this slot)
- no_eligible_candidate (entries existed, none could take the slot)
- slot_already_taken (someone else booked the freed slot first)

The release policy (revert or expire) applies to an entry whose client
is busy in the window. When the slot itself is gone, the claimed entry
is always reverted to waiting and the scan stops.

Only persistence failures during the commit raise; the claim is put
back to waiting first so a retry can pick the entry up again.
Notification failures never undo a committed booking.
"""

import logging
from datetime import datetime

from redis import Redis
from sqlalchemy.orm import Session

from ...config import settings
from ...database import SessionLocal
from ...redis_client import redis_client
from ...schemas.waitlist import AutoFillResult
from ..clock import Clock
from ..events import NotificationDispatcher
from ..slots.types import is_cancelled_status
from .stores import (
    BookingRecord,
    BookingStore,
    ClaimLostError,
    RELEASE_POLICIES,
    SlotTakenError,
    SqlBookingStore,
    SqlWaitlistStore,
    WaitlistCandidate,
    WaitlistStore,
)

logger = logging.getLogger(__name__)

APPOINTMENT_NOT_FOUND = "appointment_not_found"
APPOINTMENT_NOT_CANCELLED = "appointment_not_cancelled"
UNSUPPORTED_SERVICE_SHAPE = "unsupported_service_shape"
NO_WAITLIST_CANDIDATES = "no_waitlist_candidates"
NO_ELIGIBLE_CANDIDATE = "no_eligible_candidate"
SLOT_ALREADY_TAKEN = "slot_already_taken"


def time_preference(local_start: datetime) -> str:
    """morning < 12:00 ≤ afternoon < 17:00 ≤ evening (salon time)."""
    if local_start.hour < 12:
        return "morning"
    if local_start.hour < 17:
        return "afternoon"
    return "evening"


class WaitlistAutoFill:
    """Fills a cancelled booking's slot from the waitlist."""

    def __init__(
        self,
        bookings: BookingStore,
        waitlist: WaitlistStore,
        notifier: NotificationDispatcher | None = None,
        *,
        clock: Clock,
        release_policy: str = "revert",
        candidate_limit: int = 25,
    ):
        if release_policy not in RELEASE_POLICIES:
            raise ValueError(f"Unknown release policy: {release_policy!r}")
        if candidate_limit <= 0:
            raise ValueError(f"candidate_limit must be positive, got {candidate_limit}")

        self.bookings = bookings
        self.waitlist = waitlist
        self.notifier = notifier
        self.clock = clock
        self.release_policy = release_policy
        self.candidate_limit = candidate_limit

    def fill(self, booking_id: int) -> AutoFillResult:
        cancelled = self.bookings.get(booking_id)
        if cancelled is None:
            return AutoFillResult(filled=False, reason=APPOINTMENT_NOT_FOUND)

        if not is_cancelled_status(cancelled.status):
            return AutoFillResult(filled=False, reason=APPOINTMENT_NOT_CANCELLED)

        if cancelled.service_id is None:
            return AutoFillResult(filled=False, reason=UNSUPPORTED_SERVICE_SHAPE)

        local_start = cancelled.start.astimezone(self.clock.tz)
        candidates = self.waitlist.find_candidates(
            service_id=cancelled.service_id,
            specialist_id=cancelled.specialist_id,
            desired_date=local_start.date(),
            time_preference=time_preference(local_start),
            limit=self.candidate_limit,
        )
        if not candidates:
            return AutoFillResult(filled=False, reason=NO_WAITLIST_CANDIDATES)

        # A repeated trigger for an already refilled slot must not churn the queue
        if self.bookings.has_slot_conflict(
            cancelled.specialist_id, cancelled.start, cancelled.end, exclude_id=cancelled.id
        ):
            return AutoFillResult(filled=False, reason=SLOT_ALREADY_TAKEN)

        skipped: list[int] = []

        for entry in candidates:
            if not entry.client_email and not entry.client_phone:
                continue

            if not self.waitlist.claim(entry.id):
                logger.warning(f"[Waitlist] Entry {entry.id} already claimed, skipping")
                continue

            if self._client_busy(entry, cancelled):
                self._release(entry, self.release_policy)
                skipped.append(entry.id)
                continue

            if self.bookings.has_slot_conflict(
                cancelled.specialist_id, cancelled.start, cancelled.end, exclude_id=cancelled.id
            ):
                logger.info(f"[Waitlist] Slot of booking {cancelled.id} taken while entry {entry.id} was claimed")
                return self._slot_taken(entry, skipped)

            try:
                with self.bookings.transaction():
                    booking = self.bookings.create_replacement(cancelled, entry)
                    if not self.waitlist.fulfill(entry.id, booking.id):
                        raise ClaimLostError(f"Entry {entry.id} lost its claim before commit")
            except SlotTakenError as e:
                logger.warning(f"[Waitlist] {e}")
                return self._slot_taken(entry, skipped)
            except ClaimLostError as e:
                logger.warning(f"[Waitlist] {e}")
                continue
            except Exception:
                logger.exception(
                    f"[Waitlist] Auto-fill commit failed for booking={cancelled.id} entry={entry.id}"
                )
                # always retryable after a hard failure
                self._release(entry, "revert")
                raise

            logger.info(
                f"[Waitlist] Booking {cancelled.id} refilled: new booking={booking.id} "
                f"entry={entry.id}"
            )
            return AutoFillResult(
                filled=True,
                booking_id=booking.id,
                waitlist_entry_id=entry.id,
                skipped_entry_ids=skipped,
                notification_failures=self._notify(booking, entry),
            )

        return AutoFillResult(
            filled=False,
            reason=NO_ELIGIBLE_CANDIDATE,
            skipped_entry_ids=skipped,
        )

    def _client_busy(self, entry: WaitlistCandidate, cancelled: BookingRecord) -> bool:
        if entry.client_email and self.bookings.has_client_conflict(
            entry.client_email, cancelled.start, cancelled.end, exclude_id=cancelled.id
        ):
            logger.info(f"[Waitlist] Entry {entry.id}: client already booked in this window")
            return True
        return False

    def _slot_taken(self, entry: WaitlistCandidate, skipped: list[int]) -> AutoFillResult:
        """Revert the claim whatever the policy and stop scanning."""
        self._release(entry, "revert")
        return AutoFillResult(
            filled=False,
            reason=SLOT_ALREADY_TAKEN,
            skipped_entry_ids=skipped,
        )

    def _release(self, entry: WaitlistCandidate, policy: str) -> None:
        if not self.waitlist.release(entry.id, policy):
            logger.warning(f"[Waitlist] Entry {entry.id} was not claimed at release time")

    def _notify(self, booking: BookingRecord, entry: WaitlistCandidate) -> list[str]:
        """Send confirmation email and fill SMS; return the names of failed sends."""
        if self.notifier is None:
            return []

        payload = booking.to_payload()
        failures = []
        sends = (
            ("confirmation_email", self.notifier.send_booking_confirmation),
            ("waitlist_fill_sms", self.notifier.send_waitlist_fill_notice),
        )
        for name, send in sends:
            try:
                ok = send(payload, entry.contact)
            except Exception:
                logger.exception(f"[Waitlist] {name} failed for booking {booking.id}")
                ok = False
            if not ok:
                failures.append(name)
        return failures


def autofill_cancelled_booking(
    booking_id: int,
    db: Session | None = None,
    redis: Redis | None = None,
) -> AutoFillResult:
    """Run the auto-fill for a cancelled booking with the configured stores."""
    clock = Clock(settings.salon_tz)
    own_session = db is None
    db = db or SessionLocal()
    try:
        filler = WaitlistAutoFill(
            SqlBookingStore(db, clock, settings.reserved_unpaid_hold_minutes),
            SqlWaitlistStore(db, clock),
            NotificationDispatcher(redis or redis_client, settings.salon_tz),
            clock=clock,
            release_policy=settings.waitlist_release_policy,
            candidate_limit=settings.waitlist_candidate_limit,
        )
        result = filler.fill(booking_id)
        logger.info(f"[Waitlist] Auto-fill for booking {booking_id}: {result.reason or 'filled'}")
        return result
    finally:
        if own_session:
            db.close()

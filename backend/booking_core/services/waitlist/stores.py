"""
Persistence boundary of the waitlist auto-fill coordinator.

BookingStore / WaitlistStore describe what the coordinator needs;
SqlBookingStore / SqlWaitlistStore implement them on one SQLAlchemy
session.

Locking discipline:
- claim() is a single-row compare-and-swap (waiting → claimed), decided
  by the UPDATE rowcount; losing the race returns False.
- create_replacement() relies on the partial unique index
  uq_bookings_active_slot; a violation surfaces as SlotTakenError.
  Lapsed reserved_unpaid holds on the same slot are cancelled first.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Protocol

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import from_db_ts, to_db_ts
from ..clock import Clock
from ..slots.loader import RESERVED_UNPAID

logger = logging.getLogger(__name__)

WAITING = "waiting"
CLAIMED = "claimed"
FULFILLED = "fulfilled"
EXPIRED = "expired"

HOLD_EXPIRED = "cancelled_hold_expired"

RELEASE_POLICIES = ("revert", "expire")


class SlotTakenError(Exception):
    """Another live booking already holds the slot."""


class ClaimLostError(Exception):
    """The entry is no longer claimed by this invocation."""


@dataclass(frozen=True)
class BookingRecord:
    id: int
    specialist_id: int
    service_id: Optional[int]
    start: datetime
    end: datetime
    status: str
    client_name: str = "Client"
    client_email: Optional[str] = None
    client_phone: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "booking_id": self.id,
            "specialist_id": self.specialist_id,
            "service_id": self.service_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "status": self.status,
        }


@dataclass(frozen=True)
class WaitlistCandidate:
    id: int
    service_id: int
    client_name: str
    client_email: Optional[str]
    client_phone: Optional[str] = None
    specialist_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def contact(self) -> dict:
        return {
            "name": self.client_name,
            "email": self.client_email,
            "phone": self.client_phone,
        }


def normalize_email(email: str | None) -> str | None:
    return email.strip().lower() if email else None


class BookingStore(Protocol):
    def get(self, booking_id: int) -> BookingRecord | None: ...

    def has_client_conflict(self, email: str, start: datetime, end: datetime, exclude_id: int) -> bool: ...

    def has_slot_conflict(self, specialist_id: int, start: datetime, end: datetime, exclude_id: int) -> bool: ...

    def create_replacement(self, cancelled: BookingRecord, entry: WaitlistCandidate) -> BookingRecord: ...

    def transaction(self): ...


class WaitlistStore(Protocol):
    def find_candidates(
        self,
        service_id: int,
        specialist_id: int,
        desired_date: date,
        time_preference: str,
        limit: int,
    ) -> list[WaitlistCandidate]: ...

    def claim(self, entry_id: int) -> bool: ...

    def release(self, entry_id: int, policy: str) -> bool: ...

    def fulfill(self, entry_id: int, booking_id: int) -> bool: ...


# ── SQLAlchemy implementations ───────────────────────────────────────────


def _booking_record(row) -> BookingRecord:
    return BookingRecord(
        id=row.id,
        specialist_id=row.specialist_id,
        service_id=row.service_id,
        start=from_db_ts(row.date_start),
        end=from_db_ts(row.date_end),
        status=row.status,
        client_name=row.client_name,
        client_email=row.client_email,
        client_phone=row.client_phone,
    )


class SqlBookingStore:
    """Bookings table access for the coordinator."""

    def __init__(self, db: Session, clock: Clock, reserved_unpaid_hold_minutes: int = 3):
        self.db = db
        self.clock = clock
        self.hold_minutes = reserved_unpaid_hold_minutes

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit on success, roll back on any error."""
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get(self, booking_id: int) -> BookingRecord | None:
        from ...models.generated import Bookings

        row = self.db.get(Bookings, booking_id)
        return _booking_record(row) if row else None

    def _active_overlapping(self, start: datetime, end: datetime, exclude_id: int):
        from ...models.generated import Bookings

        hold_cutoff = to_db_ts(self.clock.now() - timedelta(minutes=self.hold_minutes))
        return (
            self.db.query(Bookings)
            .filter(
                Bookings.id != exclude_id,
                Bookings.date_start < to_db_ts(end),
                Bookings.date_end > to_db_ts(start),
                ~Bookings.status.like("cancelled%"),
                or_(
                    Bookings.status != RESERVED_UNPAID,
                    Bookings.created_at >= hold_cutoff,
                ),
            )
        )

    def has_client_conflict(self, email: str, start: datetime, end: datetime, exclude_id: int) -> bool:
        from ...models.generated import Bookings

        return (
            self._active_overlapping(start, end, exclude_id)
            .filter(Bookings.client_email == normalize_email(email))
            .first()
            is not None
        )

    def has_slot_conflict(self, specialist_id: int, start: datetime, end: datetime, exclude_id: int) -> bool:
        from ...models.generated import Bookings

        return (
            self._active_overlapping(start, end, exclude_id)
            .filter(Bookings.specialist_id == specialist_id)
            .first()
            is not None
        )

    def _retire_lapsed_holds(self, cancelled: BookingRecord) -> int:
        """
        Cancel reserved_unpaid rows on the exact slot whose hold has lapsed.

        They no longer block availability but would still trip
        uq_bookings_active_slot. Part of the caller's transaction.
        """
        from ...models.generated import Bookings

        hold_cutoff = to_db_ts(self.clock.now() - timedelta(minutes=self.hold_minutes))
        result = self.db.execute(
            update(Bookings)
            .where(
                Bookings.specialist_id == cancelled.specialist_id,
                Bookings.date_start == to_db_ts(cancelled.start),
                Bookings.date_end == to_db_ts(cancelled.end),
                Bookings.status == RESERVED_UNPAID,
                Bookings.created_at < hold_cutoff,
            )
            .values(status=HOLD_EXPIRED, updated_at=to_db_ts(self.clock.now()))
        )
        if result.rowcount:
            logger.info(
                f"[Waitlist] Cancelled {result.rowcount} lapsed hold(s) on "
                f"specialist={cancelled.specialist_id} start={cancelled.start.isoformat()}"
            )
        return result.rowcount

    def create_replacement(self, cancelled: BookingRecord, entry: WaitlistCandidate) -> BookingRecord:
        """
        Insert a confirmed booking copying the cancelled one's slot.

        Flushes but does not commit; call inside transaction().

        Raises:
            SlotTakenError: the unique slot index rejected the insert
        """
        from ...models.generated import Bookings

        self._retire_lapsed_holds(cancelled)

        now = to_db_ts(self.clock.now())
        row = Bookings(
            specialist_id=cancelled.specialist_id,
            service_id=cancelled.service_id,
            client_name=entry.client_name or "Client",
            client_email=normalize_email(entry.client_email),
            client_phone=entry.client_phone,
            date_start=to_db_ts(cancelled.start),
            date_end=to_db_ts(cancelled.end),
            duration_minutes=int((cancelled.end - cancelled.start).total_seconds() // 60),
            status="confirmed",
            source="waitlist_auto_fill",
            waitlist_entry_id=entry.id,
            created_at=now,
            updated_at=now,
            notes=f"Auto-filled from waitlist after booking {cancelled.id} was cancelled",
        )
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise SlotTakenError(
                f"Slot {cancelled.start.isoformat()} of specialist {cancelled.specialist_id} is taken"
            ) from e
        return _booking_record(row)


class SqlWaitlistStore:
    """Waitlist entries access with atomic status transitions."""

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock

    def find_candidates(
        self,
        service_id: int,
        specialist_id: int,
        desired_date: date,
        time_preference: str,
        limit: int,
    ) -> list[WaitlistCandidate]:
        """Waiting entries matching the freed slot, oldest first."""
        from ...models.generated import WaitlistEntries as W

        rows = (
            self.db.query(W)
            .filter(
                W.status == WAITING,
                W.service_id == service_id,
                or_(W.specialist_id == specialist_id, W.specialist_id.is_(None)),
                or_(W.desired_date == desired_date.isoformat(), W.desired_date.is_(None), W.desired_date == ""),
                W.time_preference.in_([time_preference, "any"]),
            )
            .order_by(W.created_at.asc(), W.id.asc())
            .limit(limit)
            .all()
        )
        return [
            WaitlistCandidate(
                id=r.id,
                service_id=r.service_id,
                client_name=r.client_name,
                client_email=r.client_email,
                client_phone=r.client_phone,
                specialist_id=r.specialist_id,
                created_at=from_db_ts(r.created_at) if r.created_at else None,
            )
            for r in rows
        ]

    def _transition(self, entry_id: int, from_status: str, **values) -> bool:
        from ...models.generated import WaitlistEntries as W

        result = self.db.execute(
            update(W)
            .where(W.id == entry_id, W.status == from_status)
            .values(**values)
        )
        return result.rowcount == 1

    def claim(self, entry_id: int) -> bool:
        """waiting → claimed; False if someone else got there first."""
        claimed = self._transition(
            entry_id, WAITING,
            status=CLAIMED,
            claimed_at=to_db_ts(self.clock.now()),
        )
        self.db.commit()
        return claimed

    def release(self, entry_id: int, policy: str) -> bool:
        """claimed → waiting ('revert') or expired ('expire')."""
        if policy not in RELEASE_POLICIES:
            raise ValueError(f"Unknown release policy: {policy!r}")
        target = WAITING if policy == "revert" else EXPIRED
        released = self._transition(entry_id, CLAIMED, status=target, claimed_at=None)
        self.db.commit()
        return released

    def fulfill(self, entry_id: int, booking_id: int) -> bool:
        """claimed → fulfilled. Part of the booking transaction, no commit here."""
        return self._transition(
            entry_id, CLAIMED,
            status=FULFILLED,
            fulfilled_at=to_db_ts(self.clock.now()),
            fulfilled_booking_id=booking_id,
        )

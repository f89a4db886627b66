"""Shared fixtures: frozen clock, Redis double, SQLite session, in-memory stores."""

from __future__ import annotations

import fnmatch
import threading
from contextlib import contextmanager
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from booking_core.models.generated import Base
from booking_core.services.clock import Clock
from booking_core.services.slots.config import BookingConfig
from booking_core.services.slots.types import is_cancelled_status
from booking_core.services.waitlist.stores import (
    CLAIMED,
    EXPIRED,
    FULFILLED,
    WAITING,
    BookingRecord,
    SlotTakenError,
    WaitlistCandidate,
    normalize_email,
)

LONDON = ZoneInfo("Europe/London")


def at(value: str, tz: ZoneInfo = LONDON) -> datetime:
    """'2026-03-10 09:00' in salon time → aware datetime."""
    return datetime.strptime(value, "%Y-%m-%d %H:%M").replace(tzinfo=tz)


class FixedClock(Clock):
    def __init__(self, now: datetime, tz: ZoneInfo = LONDON):
        super().__init__(tz)
        self._now = now

    def now(self) -> datetime:
        return self._now


class FakeRedis:
    """Just enough of the redis client for the cache and the event queue."""

    def __init__(self, fail_writes: bool = False):
        self.data: dict[str, str] = {}
        self.ttl: dict[str, int] = {}
        self.lists: dict[str, list[str]] = {}
        self.fail_writes = fail_writes

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        if self.fail_writes:
            raise ConnectionError("redis down")
        self.data[key] = value
        if ex is not None:
            self.ttl[key] = ex
        return True

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.ttl.pop(key, None)
                deleted += 1
        return deleted

    def scan_iter(self, match="*"):
        return [k for k in list(self.data) if fnmatch.fnmatch(k, match)]

    def rpush(self, key, value):
        if self.fail_writes:
            raise ConnectionError("redis down")
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])


@pytest.fixture
def config() -> BookingConfig:
    return BookingConfig(salon_tz="Europe/London", slot_step_minutes=15)


@pytest.fixture
def clock() -> FixedClock:
    # A Saturday well before every date used in the tests
    return FixedClock(at("2026-03-07 08:00"))


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


# ── In-memory stores ─────────────────────────────────────────────────────


class MemoryState:
    """Bookings and waitlist entries behind one lock, like one database."""

    def __init__(self):
        self.lock = threading.RLock()
        self.bookings: dict[int, dict] = {}
        self.entries: dict[int, dict] = {}
        self.journal: list | None = None
        self._next_booking_id = 1000

    def record(self, undo) -> None:
        if self.journal is not None:
            self.journal.append(undo)

    def add_booking(self, **fields) -> int:
        booking_id = fields.pop("id", None) or self._next_id()
        record = {
            "id": booking_id,
            "service_id": 1,
            "client_name": "Client",
            "client_email": None,
            "client_phone": None,
            "status": "confirmed",
        }
        record.update(fields)
        self.bookings[booking_id] = record
        return booking_id

    def add_entry(self, entry_id: int, email: str, created_at: datetime, **fields) -> int:
        record = {
            "id": entry_id,
            "service_id": 1,
            "specialist_id": None,
            "desired_date": None,
            "time_preference": "any",
            "client_name": f"Client {entry_id}",
            "client_email": email,
            "client_phone": "+447700900000",
            "status": WAITING,
            "created_at": created_at,
            "fulfilled_booking_id": None,
        }
        record.update(fields)
        self.entries[entry_id] = record
        return entry_id

    def _next_id(self) -> int:
        self._next_booking_id += 1
        return self._next_booking_id


class MemoryBookingStore:
    def __init__(self, state: MemoryState, fail_create: bool = False, before_create=None):
        self.state = state
        self.fail_create = fail_create
        self.before_create = before_create

    @contextmanager
    def transaction(self):
        # writes made outside the transaction (other clients) survive a rollback
        with self.state.lock:
            self.state.journal = []
            try:
                yield
            except Exception:
                for undo in reversed(self.state.journal):
                    undo()
                raise
            finally:
                self.state.journal = None

    def get(self, booking_id):
        b = self.state.bookings.get(booking_id)
        if b is None:
            return None
        return BookingRecord(
            id=b["id"],
            specialist_id=b["specialist_id"],
            service_id=b["service_id"],
            start=b["start"],
            end=b["end"],
            status=b["status"],
            client_name=b["client_name"],
            client_email=b["client_email"],
            client_phone=b["client_phone"],
        )

    def _overlapping(self, start, end, exclude_id):
        return [
            b for b in self.state.bookings.values()
            if b["id"] != exclude_id
            and not is_cancelled_status(b["status"])
            and b["start"] < end and start < b["end"]
        ]

    def has_client_conflict(self, email, start, end, exclude_id):
        with self.state.lock:
            return any(
                normalize_email(b["client_email"]) == normalize_email(email)
                for b in self._overlapping(start, end, exclude_id)
            )

    def has_slot_conflict(self, specialist_id, start, end, exclude_id):
        with self.state.lock:
            return any(
                b["specialist_id"] == specialist_id
                for b in self._overlapping(start, end, exclude_id)
            )

    def create_replacement(self, cancelled, entry):
        if self.before_create is not None:
            self.before_create()
        if self.fail_create:
            raise RuntimeError("database is unavailable")
        with self.state.lock:
            for b in self.state.bookings.values():
                if (
                    b["specialist_id"] == cancelled.specialist_id
                    and b["start"] == cancelled.start
                    and b["end"] == cancelled.end
                    and not is_cancelled_status(b["status"])
                ):
                    raise SlotTakenError("unique slot")
            booking_id = self.state.add_booking(
                specialist_id=cancelled.specialist_id,
                service_id=cancelled.service_id,
                start=cancelled.start,
                end=cancelled.end,
                status="confirmed",
                source="waitlist_auto_fill",
                client_name=entry.client_name,
                client_email=normalize_email(entry.client_email),
                client_phone=entry.client_phone,
            )
            self.state.record(lambda: self.state.bookings.pop(booking_id))
            return self.get(booking_id)


class MemoryWaitlistStore:
    def __init__(self, state: MemoryState):
        self.state = state

    def find_candidates(self, service_id, specialist_id, desired_date: date, time_preference, limit):
        with self.state.lock:
            rows = [
                e for e in self.state.entries.values()
                if e["status"] == WAITING
                and e["service_id"] == service_id
                and e["specialist_id"] in (None, specialist_id)
                and e["desired_date"] in (None, desired_date.isoformat())
                and e["time_preference"] in (time_preference, "any")
            ]
            rows.sort(key=lambda e: (e["created_at"], e["id"]))
            return [
                WaitlistCandidate(
                    id=e["id"],
                    service_id=e["service_id"],
                    client_name=e["client_name"],
                    client_email=e["client_email"],
                    client_phone=e["client_phone"],
                    specialist_id=e["specialist_id"],
                    created_at=e["created_at"],
                )
                for e in rows[:limit]
            ]

    def _transition(self, entry_id, from_status, to_status):
        with self.state.lock:
            entry = self.state.entries.get(entry_id)
            if entry is None or entry["status"] != from_status:
                return False
            entry["status"] = to_status
            return True

    def claim(self, entry_id):
        return self._transition(entry_id, WAITING, CLAIMED)

    def release(self, entry_id, policy):
        return self._transition(entry_id, CLAIMED, WAITING if policy == "revert" else EXPIRED)

    def fulfill(self, entry_id, booking_id):
        ok = self._transition(entry_id, CLAIMED, FULFILLED)
        if ok:
            entry = self.state.entries[entry_id]
            entry["fulfilled_booking_id"] = booking_id
            self.state.record(lambda: entry.update(status=CLAIMED, fulfilled_booking_id=None))
        return ok


class RecordingNotifier:
    def __init__(self, fail_email: bool = False, raise_sms: bool = False):
        self.fail_email = fail_email
        self.raise_sms = raise_sms
        self.sent: list[tuple[str, dict, dict]] = []

    def send_booking_confirmation(self, booking, contact):
        self.sent.append(("email", booking, contact))
        return not self.fail_email

    def send_waitlist_fill_notice(self, booking, contact):
        if self.raise_sms:
            raise RuntimeError("sms gateway timeout")
        self.sent.append(("sms", booking, contact))
        return True


@pytest.fixture
def memory_state() -> MemoryState:
    return MemoryState()


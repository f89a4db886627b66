from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from .config import settings

# check_same_thread=False: sessions are handed between worker threads
engine = create_engine(
    settings.resolved_database_url,
    connect_args={"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {},
)


@event.listens_for(engine, "connect")
def enable_sqlite_fk(dbapi_connection, _):
    if not settings.database_url.startswith("sqlite"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# ── Timestamp columns ────────────────────────────────────────────────────
# Datetimes live in TEXT columns as UTC ISO-8601 with a fixed layout,
# so string comparison in SQL equals chronological comparison.


def to_db_ts(value: datetime) -> str:
    """Aware datetime → 'YYYY-MM-DDTHH:MM:SS+00:00'."""
    if value.tzinfo is None:
        raise ValueError(f"Naive datetime cannot be stored: {value!r}")
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def from_db_ts(value: str | datetime) -> datetime:
    """Parse a stored timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

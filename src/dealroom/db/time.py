"""UTC helpers shared by models, history entries and event payloads."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends that drop the offset."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_isoformat(value: datetime | None = None) -> str:
    """ISO-8601 string for ``value`` (default: now), always with a UTC offset."""
    return as_utc(value or utcnow()).isoformat()

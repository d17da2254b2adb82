from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as written by `datetime.isoformat()`."""
    if not value:
        return None
    return ensure_aware(datetime.fromisoformat(value))

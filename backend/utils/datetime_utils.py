from datetime import datetime, date, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def date_or_today(d: date | None) -> date:
    """Calendar day a per-day record belongs to; defaults to today in UTC."""
    return d if d is not None else today_utc()


def as_utc_datetime(value: date | datetime) -> datetime:
    """Dates become UTC midnight; naive datetimes are read as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)

from datetime import date, datetime, time, timedelta, timezone as dt_tz
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

UTC = dt_tz.utc


def resolve_timezone(name):
    """Return a tzinfo for an IANA name; unset or unknown names fall back to UTC."""
    if not name:
        return UTC
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return UTC


def utc_now():
    return datetime.now(UTC)


def ensure_aware(dt):
    # Naive datetimes are UTC instants throughout the app
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def local_date(now, tz_name):
    return ensure_aware(now).astimezone(resolve_timezone(tz_name)).date()


def local_date_string(now, tz_name):
    return local_date(now, tz_name).isoformat()


def previous_date_string(date_string):
    return (date.fromisoformat(date_string) - timedelta(days=1)).isoformat()


def days_between(first, second):
    """Whole calendar days between two ``YYYY-MM-DD`` strings (absolute)."""
    return abs((date.fromisoformat(second) - date.fromisoformat(first)).days)


def hours_until_local_midnight(now, tz_name):
    tz = resolve_timezone(tz_name)
    local_now = ensure_aware(now).astimezone(tz)
    midnight = datetime.combine(local_now.date() + timedelta(days=1), time.min, tzinfo=tz)
    # Subtract in UTC; same-tzinfo subtraction ignores DST shifts
    remaining = midnight.astimezone(UTC) - local_now.astimezone(UTC)
    return max(0.0, remaining.total_seconds() / 3600)


def to_local_iso(dt_utc, tz_name):
    if dt_utc is None:
        return None
    return ensure_aware(dt_utc).astimezone(resolve_timezone(tz_name)).isoformat()

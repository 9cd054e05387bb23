"""
Date helpers

Timestamps are stored as UTC ISO-8601 strings, business dates as YYYY-MM-DD.
"""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """Current UTC time"""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string"""
    return now_utc().isoformat()


def today_iso() -> str:
    """Current UTC date as YYYY-MM-DD"""
    return now_utc().date().isoformat()


def to_date_str(value: date | datetime | str | None) -> str:
    """Normalise a business date to YYYY-MM-DD

    None means today. Strings are validated and truncated to the date part.

    Raises:
        ValueError: the string is not an ISO date
    """
    if value is None or value == "":
        return today_iso()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    return date.fromisoformat(text[:10]).isoformat()

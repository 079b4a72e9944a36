from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime (or plain date) string into a UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" -> midnight of that day
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    dt = parse_iso_datetime(value)
    return dt.date() if dt else None


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


# Reporting windows. Every window is half-open: [start, end).

def day_window(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def week_window(day: date) -> Tuple[datetime, datetime]:
    """Week containing `day`, starting on Monday."""
    monday = day - timedelta(days=day.weekday())
    start = datetime.combine(monday, time.min)
    return start, start + timedelta(days=7)


def month_window(day: date) -> Tuple[datetime, datetime]:
    first = day.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return datetime.combine(first, time.min), datetime.combine(next_first, time.min)


def date_range_window(start: date, end: date) -> Tuple[datetime, datetime]:
    """Inclusive calendar range [start, end] as a half-open datetime window."""
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)

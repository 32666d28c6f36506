"""
Date arithmetic shared by the API and the client stores.

Both sides import these helpers so that a derived value shown before a save
(end date, elapsed %) is exactly what the server persists after the round trip.
All dates travel as ISO calendar dates (YYYY-MM-DD).
"""
from __future__ import annotations
import re
from datetime import date, datetime, timedelta

_ISO_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?\s*$")

DateLike = date | str | None


def parse_iso(value: DateLike) -> date | None:
    """Parse 'YYYY-MM-DD' (a trailing time part is ignored) or return None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    m = _ISO_RE.match(str(value))
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def iso(d: date | None) -> str | None:
    return d.isoformat() if d else None


def as_days(value) -> int | None:
    """Coerce a duration-like value to whole days; None when not a number."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def compute_end_date(start: DateLike, duration) -> date | None:
    """
    Inclusive end date: a 1-day task starting on D ends on D.
    Returns None when start is unparseable, duration <= 0, or the end
    falls outside the calendar (past year 9999).
    """
    s = parse_iso(start)
    n = as_days(duration)
    if s is None or n is None or n <= 0:
        return None
    try:
        return s + timedelta(days=n - 1)
    except OverflowError:
        return None


def compute_elapsed_progress(start: DateLike, duration, today: DateLike = None) -> int:
    """
    Linear elapsed-time estimate in 0..100 (display only).
    0 before start, 100 once `duration` days have elapsed.
    """
    s = parse_iso(start)
    n = as_days(duration)
    if s is None or n is None or n <= 0:
        return 0
    t = parse_iso(today) or date.today()
    elapsed = (t - s).days
    if elapsed < 0:
        return 0
    if elapsed >= n:
        return 100
    return round(elapsed / n * 100)


def days_between(a: DateLike, b: DateLike) -> int | None:
    """Signed calendar days from a to b, None if either is missing."""
    da, db_ = parse_iso(a), parse_iso(b)
    if da is None or db_ is None:
        return None
    return (db_ - da).days


def inclusive_duration(start: DateLike, end: DateLike) -> int | None:
    """Inverse of compute_end_date; at least 1 when both dates parse."""
    diff = days_between(start, end)
    if diff is None:
        return None
    return max(diff + 1, 1)


def shift(d: date | None, delta_days: int) -> date | None:
    return d + timedelta(days=delta_days) if d else None

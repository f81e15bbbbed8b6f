from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def date_stamp(value: Optional[date] = None) -> str:
    """
    Compact YYYYMMDD stamp used to scope daily document counters.

    None means today (UTC).
    """
    if value is None:
        value = utcnow()
    return value.strftime("%Y%m%d")


def days_between(earlier: Optional[datetime], later: datetime) -> Optional[int]:
    """Whole days from earlier to later; None when earlier is unknown."""
    if earlier is None:
        return None
    return max(0, (_naive_utc(later) - _naive_utc(earlier)).days)


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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

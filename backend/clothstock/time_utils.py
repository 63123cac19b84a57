"""
Datetime conventions

Timestamps are stored as naive datetimes that mean UTC. Anything coming in
from a request is normalized to that form here; anything going out is
rendered with a trailing "Z". Only document numbering cares about the
shop's local calendar day (business_date_key).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DATE_ONLY_LEN = len("YYYY-MM-DD")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 string -> naive UTC datetime; blank -> None.

    A string without an offset is taken to be UTC already. "Z" is accepted
    as an offset. Malformed input raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def normalize_datetime(value, *, default_now: bool = True) -> Optional[datetime]:
    """Accept a datetime, an ISO string or nothing (-> now, unless default_now=False)."""
    if isinstance(value, datetime):
        return _as_naive_utc(value)
    if isinstance(value, str) and value.strip():
        return parse_iso_datetime(value)
    if value is None or isinstance(value, str):
        return utcnow() if default_now else None
    raise ValueError("invalid datetime")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render as "2024-03-01T09:30:00Z" (seconds precision). Naive input is UTC."""
    if dt is None:
        return None
    aware = dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def business_date_key(dt: datetime, tz_name: str = "UTC") -> str:
    """YYYYMMDD of the shop-local calendar day containing the UTC instant dt."""
    local = dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name))
    return local.strftime("%Y%m%d")


def parse_range_bound(value: Optional[str], *, end: bool = False) -> Optional[datetime]:
    """
    Query-string from/to bound.

    "2024-03-01" alone covers the whole day: midnight as a start bound, the
    last microsecond of the day as an end bound. Longer values go through
    parse_iso_datetime.
    """
    text = (value or "").strip()
    if not text:
        return None
    if len(text) != DATE_ONLY_LEN:
        return parse_iso_datetime(text)
    day = datetime.strptime(text, "%Y-%m-%d")
    if end:
        day += timedelta(days=1) - timedelta(microseconds=1)
    return day

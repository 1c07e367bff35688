"""Time utilities (UTC now, local calendar day, elapsed formatting)."""
from __future__ import annotations
from datetime import date, datetime, timezone, timedelta
from zoneinfo import ZoneInfo

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def local_now(tz_name: str) -> datetime:
    """Current wall-clock time in ``tz_name``; reminder day boundaries follow this zone."""
    return datetime.now(ZoneInfo(tz_name))

def as_day(value: date | datetime) -> date:
    """Strip time-of-day; comparisons in the scheduler are day-granular."""
    if isinstance(value, datetime):
        return value.date()
    return value

def format_elapsed(start: datetime, end: datetime | None = None) -> str:
    end_ts = end or utc_now()
    delta: timedelta = end_ts - start
    ms = int(delta.total_seconds() * 1000)
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60_000:
        return f"{ms/1000:.2f}s"
    return f"{delta.total_seconds()/60:.2f}m"

__all__ = ["utc_now", "local_now", "as_day", "format_elapsed"]

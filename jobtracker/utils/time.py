"""Time utilities (UTC now, end of local day, timezone coercion)."""
from __future__ import annotations
from datetime import datetime, time, timezone, tzinfo
from zoneinfo import ZoneInfo

# Millisecond precision: the smallest unit a Redis PX expiry can express.
END_OF_DAY = time(23, 59, 59, 999000)

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def resolve_tz(name: str | tzinfo) -> tzinfo:
    if isinstance(name, tzinfo):
        return name
    return ZoneInfo(name)

def end_of_day(moment: datetime, tz: tzinfo) -> datetime:
    """Last millisecond of the day containing ``moment`` as observed in ``tz``.

    Naive datetimes are taken to already be local to ``tz``.
    """
    local = moment.replace(tzinfo=tz) if moment.tzinfo is None else moment.astimezone(tz)
    return datetime.combine(local.date(), END_OF_DAY, tzinfo=tz)

def as_aware(moment: datetime, tz: tzinfo = timezone.utc) -> datetime:
    return moment.replace(tzinfo=tz) if moment.tzinfo is None else moment

__all__ = ["utc_now", "resolve_tz", "end_of_day", "as_aware", "END_OF_DAY"]

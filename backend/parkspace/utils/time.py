from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def local_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().local_timezone)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_naive_to_utc_naive(dt: datetime) -> datetime:
    """Wall-clock time in the configured zone -> naive UTC for storage and queries."""
    return to_utc_naive(dt.replace(tzinfo=local_zone()))


def utc_naive_to_local(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(local_zone())


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_today() -> date:
    return datetime.now(local_zone()).date()

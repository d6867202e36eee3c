from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from ..config import get_settings


def business_tz() -> tzinfo:
    return ZoneInfo(get_settings().business_timezone)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc)


def utc_naive_to_local(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(business_tz())

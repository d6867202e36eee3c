from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import StrEnum
from typing import Iterable, Mapping, Optional

from .errors import InvalidInputError

DEFAULT_OPEN_TIME = 9 * 60
DEFAULT_CLOSE_TIME = 17 * 60


class ClosedReason(StrEnum):
    WEEKLY_CLOSED = "weekly-closed"
    HOLIDAY = "holiday"


@dataclass(frozen=True)
class DaySchedule:
    is_open: bool
    open_time: Optional[int] = None
    close_time: Optional[int] = None


@dataclass(frozen=True)
class Holiday:
    day: date
    note: Optional[str] = None


@dataclass(frozen=True)
class BusinessCalendar:
    """Weekly template keyed 0=Sunday..6=Saturday plus exact-date holiday closures."""

    weekly: Mapping[int, DaySchedule]
    holidays: tuple[Holiday, ...] = ()
    _holiday_index: dict[date, Holiday] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_holiday_index", {h.day: h for h in self.holidays})

    @classmethod
    def build(cls, weekly: Mapping[int, DaySchedule], holidays: Iterable[Holiday] = ()) -> "BusinessCalendar":
        return cls(weekly=dict(weekly), holidays=tuple(holidays))

    def holiday_on(self, day: date) -> Optional[Holiday]:
        return self._holiday_index.get(day)


@dataclass(frozen=True)
class DayOpenness:
    day: date
    open: bool
    open_time: Optional[int] = None
    close_time: Optional[int] = None
    closed_reason: Optional[ClosedReason] = None
    note: Optional[str] = None

    def admits(self, minute: int) -> bool:
        """Close time itself is bookable."""
        if not self.open or self.open_time is None or self.close_time is None:
            return False
        return self.open_time <= minute <= self.close_time


def weekday_index(day: date) -> int:
    """Sunday-based weekday (0=Sunday..6=Saturday)."""
    return (day.weekday() + 1) % 7


def resolve_day(calendar: BusinessCalendar, day: Optional[date]) -> DayOpenness:
    if day is None:
        raise InvalidInputError("date is required")
    schedule = calendar.weekly.get(weekday_index(day))
    if schedule is None or not schedule.is_open:
        return DayOpenness(day=day, open=False, closed_reason=ClosedReason.WEEKLY_CLOSED)
    holiday = calendar.holiday_on(day)
    if holiday is not None:
        return DayOpenness(day=day, open=False, closed_reason=ClosedReason.HOLIDAY, note=holiday.note)
    open_time = schedule.open_time if schedule.open_time is not None else DEFAULT_OPEN_TIME
    close_time = schedule.close_time if schedule.close_time is not None else DEFAULT_CLOSE_TIME
    return DayOpenness(day=day, open=True, open_time=open_time, close_time=close_time)


def is_within_business_hours(calendar: BusinessCalendar, day: date, minute: int) -> bool:
    return resolve_day(calendar, day).admits(minute)


def list_days(calendar: BusinessCalendar, start: date, end: date) -> list[DayOpenness]:
    if start > end:
        raise InvalidInputError("start must not be after end")
    days: list[DayOpenness] = []
    current = start
    while current <= end:
        days.append(resolve_day(calendar, current))
        current += timedelta(days=1)
    return days

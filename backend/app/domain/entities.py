from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Union

from ..models import ReservationStatus, ReservationStyle
from .errors import InvalidInputError

MINUTES_PER_DAY = 24 * 60

ACTIVE_STATUSES: frozenset[ReservationStatus] = frozenset(
    {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
)


def parse_time_of_day(value: str) -> int:
    """Convert "HH:MM" to minute-of-day."""
    try:
        hours_str, minutes_str = value.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError) as exc:
        raise InvalidInputError(f"invalid time of day: {value!r}") from exc
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InvalidInputError(f"time of day out of range: {value!r}")
    return hours * 60 + minutes


def format_time_of_day(minute: int) -> str:
    if not 0 <= minute < MINUTES_PER_DAY:
        raise InvalidInputError(f"minute of day out of range: {minute}")
    return f"{minute // 60:02d}:{minute % 60:02d}"


def local_instant(day: date, minute: int, tz: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz) + timedelta(minutes=minute)


@dataclass(frozen=True)
class IntervalReservation:
    id: int | None
    resource_id: int
    start: datetime
    end: datetime
    status: ReservationStatus

    style = ReservationStyle.INTERVAL


@dataclass(frozen=True)
class SlotReservation:
    id: int | None
    resource_id: int | None
    day: date
    time_of_day: int
    duration_minutes: int
    status: ReservationStatus

    style = ReservationStyle.SLOT

    def occupied_end(self, buffer_minutes: int) -> int:
        """Minute-of-day at which the unit is free again (may exceed the day)."""
        if self.duration_minutes <= 0:
            return self.time_of_day
        return self.time_of_day + self.duration_minutes + buffer_minutes

    def as_interval(self, tz: tzinfo, buffer_minutes: int) -> IntervalReservation:
        if self.resource_id is None:
            raise InvalidInputError("pool reservations have no unit to project")
        start = local_instant(self.day, self.time_of_day, tz)
        span = max(self.duration_minutes, 0) + buffer_minutes
        return IntervalReservation(
            id=self.id,
            resource_id=self.resource_id,
            start=start,
            end=start + timedelta(minutes=span),
            status=self.status,
        )


ReservationRecord = Union[IntervalReservation, SlotReservation]

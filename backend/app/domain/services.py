from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import StrEnum
from typing import Iterable, Optional, Sequence, Union

from ..models import ReservationStatus
from .calendar import BusinessCalendar, ClosedReason, DayOpenness, resolve_day
from .entities import (
    ACTIVE_STATUSES,
    MINUTES_PER_DAY,
    IntervalReservation,
    ReservationRecord,
    SlotReservation,
    local_instant,
)
from .errors import InvalidInputError
from .intervals import find_overlaps, validate_window
from .slots import SlotQueue, SlotState, compute_slot_state, validate_catalog

PREFERRED_UNIT_UNAVAILABLE = "preferred-unit-unavailable"


class ReasonCode(StrEnum):
    ADMITTED = "admitted"
    CLOSED = "closed"
    TOO_SOON = "too_soon"
    OVERLAP = "overlap"
    SLOT_FULL = "slot_full"
    SLOT_NOT_OFFERED = "slot_not_offered"


@dataclass(frozen=True)
class SchedulingConfig:
    calendar: BusinessCalendar
    catalog: tuple[SlotQueue, ...] = ()
    buffer_minutes: int = 0
    pool_size: int = 1
    use_pool_capacity: bool = False
    min_lead_minutes: int = 60
    tz: tzinfo = timezone.utc
    blocking_statuses: frozenset[ReservationStatus] = ACTIVE_STATUSES

    def slot_pool_size(self) -> Optional[int]:
        return self.pool_size if self.use_pool_capacity else None


@dataclass(frozen=True)
class IntervalRequest:
    resource_id: int
    start: datetime
    end: datetime


@dataclass(frozen=True)
class SlotRequest:
    day: date
    time_of_day: int
    duration_minutes: int
    preferred_resource_id: Optional[int] = None


AdmissionRequest = Union[IntervalRequest, SlotRequest]


@dataclass(frozen=True)
class AdmissionVerdict:
    admitted: bool
    reason_code: ReasonCode
    conflicts: tuple[int, ...] = ()
    assigned_slot: Optional[int] = None
    assigned_resource_id: Optional[int] = None
    closed_reason: Optional[ClosedReason] = None
    note: Optional[str] = None
    warnings: tuple[str, ...] = ()

    @classmethod
    def reject(cls, reason: ReasonCode, **kwargs: object) -> "AdmissionVerdict":
        return cls(admitted=False, reason_code=reason, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def closed(cls, openness: DayOpenness) -> "AdmissionVerdict":
        return cls.reject(ReasonCode.CLOSED, closed_reason=openness.closed_reason, note=openness.note)


def check_admission(
    config: SchedulingConfig,
    request: AdmissionRequest,
    existing: Iterable[ReservationRecord],
    *,
    now: datetime,
) -> AdmissionVerdict:
    """
    Decide whether `request` may be admitted against the `existing` snapshot.

    Business rejections come back as verdicts; only malformed input raises.
    Pure: calling it twice with the same arguments yields the same verdict.
    """
    if now.tzinfo is None:
        raise InvalidInputError("now must be timezone-aware")
    if isinstance(request, IntervalRequest):
        return _check_interval(config, request, list(existing), now)
    if isinstance(request, SlotRequest):
        return _check_slot(config, request, list(existing), now)
    raise InvalidInputError(f"unsupported request type: {type(request).__name__}")


def _too_soon(config: SchedulingConfig, start: datetime, now: datetime) -> bool:
    return start < now + timedelta(minutes=config.min_lead_minutes)


def _check_interval(
    config: SchedulingConfig,
    request: IntervalRequest,
    existing: Sequence[ReservationRecord],
    now: datetime,
) -> AdmissionVerdict:
    validate_window(request.start, request.end)
    openness = resolve_day(config.calendar, request.start.astimezone(config.tz).date())
    if not openness.open:
        return AdmissionVerdict.closed(openness)
    if _too_soon(config, request.start, now):
        return AdmissionVerdict.reject(ReasonCode.TOO_SOON)

    intervals = [r for r in existing if isinstance(r, IntervalReservation)]
    overlaps = find_overlaps(
        request.resource_id,
        request.start,
        request.end,
        intervals,
        blocking_statuses=config.blocking_statuses,
    )
    if overlaps:
        return AdmissionVerdict.reject(ReasonCode.OVERLAP, conflicts=_ids(overlaps))
    return AdmissionVerdict(
        admitted=True,
        reason_code=ReasonCode.ADMITTED,
        assigned_resource_id=request.resource_id,
    )


def _validate_slot_request(config: SchedulingConfig, request: SlotRequest) -> int:
    if request.day is None:
        raise InvalidInputError("date is required")
    if request.duration_minutes is None or request.duration_minutes <= 0:
        raise InvalidInputError("duration_minutes must be positive")
    if not 0 <= request.time_of_day < MINUTES_PER_DAY:
        raise InvalidInputError("time_of_day must be a minute of the day")
    buffer_minutes = config.buffer_minutes
    if buffer_minutes < 0:
        raise InvalidInputError("buffer_minutes must not be negative")
    validate_catalog(config.catalog)
    return buffer_minutes


def _check_slot(
    config: SchedulingConfig,
    request: SlotRequest,
    existing: Sequence[ReservationRecord],
    now: datetime,
) -> AdmissionVerdict:
    buffer_minutes = _validate_slot_request(config, request)
    openness = resolve_day(config.calendar, request.day)
    if not openness.open:
        return AdmissionVerdict.closed(openness)
    start = local_instant(request.day, request.time_of_day, config.tz)
    if _too_soon(config, start, now):
        return AdmissionVerdict.reject(ReasonCode.TOO_SOON)

    catalog_times = {queue.time_of_day for queue in config.catalog}
    if request.time_of_day not in catalog_times or not openness.admits(request.time_of_day):
        return AdmissionVerdict.reject(ReasonCode.SLOT_NOT_OFFERED)

    bookings = [
        r
        for r in existing
        if isinstance(r, SlotReservation) and r.day == request.day and r.status in config.blocking_statuses
    ]
    states = compute_slot_state(
        request.day,
        config.catalog,
        bookings,
        buffer_minutes=buffer_minutes,
        pool_size=config.slot_pool_size(),
        blocking_statuses=config.blocking_statuses,
    )

    target = states[request.time_of_day]
    if target.is_full:
        return AdmissionVerdict.reject(
            ReasonCode.SLOT_FULL,
            conflicts=_occupants(bookings, target, buffer_minutes),
        )

    # The candidate's own spill must not push a later slot past capacity.
    occupied_end = request.time_of_day + request.duration_minutes + buffer_minutes
    for state in states.values():
        if request.time_of_day < state.time_of_day < occupied_end and state.is_full:
            return AdmissionVerdict.reject(
                ReasonCode.SLOT_FULL,
                conflicts=_occupants(bookings, state, buffer_minutes),
            )

    assigned_resource_id: Optional[int] = None
    warnings: tuple[str, ...] = ()
    if request.preferred_resource_id is not None:
        if _unit_is_free(config, request.preferred_resource_id, request, bookings, start, buffer_minutes):
            assigned_resource_id = request.preferred_resource_id
        else:
            warnings = (PREFERRED_UNIT_UNAVAILABLE,)

    return AdmissionVerdict(
        admitted=True,
        reason_code=ReasonCode.ADMITTED,
        assigned_slot=request.time_of_day,
        assigned_resource_id=assigned_resource_id,
        warnings=warnings,
    )


def _unit_is_free(
    config: SchedulingConfig,
    unit_id: int,
    request: SlotRequest,
    bookings: Sequence[SlotReservation],
    start: datetime,
    buffer_minutes: int,
) -> bool:
    unit_windows = [
        b.as_interval(config.tz, buffer_minutes) for b in bookings if b.resource_id == unit_id
    ]
    end = start + timedelta(minutes=request.duration_minutes + buffer_minutes)
    return not find_overlaps(unit_id, start, end, unit_windows, blocking_statuses=config.blocking_statuses)


def _occupants(bookings: Sequence[SlotReservation], state: SlotState, buffer_minutes: int) -> tuple[int, ...]:
    """Reservations booked in, or spilling into, the given slot."""
    return _ids(
        b
        for b in bookings
        if b.time_of_day == state.time_of_day
        or b.time_of_day < state.time_of_day < b.occupied_end(buffer_minutes)
    )


def _ids(reservations: Iterable[ReservationRecord]) -> tuple[int, ...]:
    return tuple(r.id for r in reservations if r.id is not None)

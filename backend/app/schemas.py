from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator

from .domain.calendar import ClosedReason, DayOpenness
from .domain.entities import format_time_of_day, parse_time_of_day
from .domain.services import AdmissionVerdict, IntervalRequest, ReasonCode, SlotRequest
from .models import Reservation, ReservationStatus, ReservationStyle
from .usecases.slots import SlotAvailability
from .utils.time import business_tz, utc_naive_to_local


class IntervalCandidate(BaseModel):
    style: Literal["interval"] = "interval"
    resource_id: int = Field(ge=1)
    starts_at: datetime
    ends_at: datetime

    def to_request(self) -> IntervalRequest:
        return IntervalRequest(resource_id=self.resource_id, start=self.starts_at, end=self.ends_at)


class SlotCandidate(BaseModel):
    style: Literal["slot"] = "slot"
    date: date
    time: str = Field(description="HH:MM, business-local")
    duration_minutes: int = Field(ge=1)
    preferred_resource_id: Optional[int] = Field(default=None, ge=1)

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_time_of_day(value)
        return value

    def to_request(self) -> SlotRequest:
        return SlotRequest(
            day=self.date,
            time_of_day=parse_time_of_day(self.time),
            duration_minutes=self.duration_minutes,
            preferred_resource_id=self.preferred_resource_id,
        )


Candidate = Annotated[Union[IntervalCandidate, SlotCandidate], Field(discriminator="style")]


class ReservationCreate(BaseModel):
    candidate: Candidate


class AdmissionVerdictRead(BaseModel):
    admitted: bool
    reason_code: ReasonCode
    conflicts: List[int] = Field(default_factory=list)
    assigned_slot: Optional[str] = None
    assigned_resource_id: Optional[int] = None
    closed_reason: Optional[ClosedReason] = None
    note: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, verdict: AdmissionVerdict) -> "AdmissionVerdictRead":
        return cls(
            admitted=verdict.admitted,
            reason_code=verdict.reason_code,
            conflicts=list(verdict.conflicts),
            assigned_slot=format_time_of_day(verdict.assigned_slot) if verdict.assigned_slot is not None else None,
            assigned_resource_id=verdict.assigned_resource_id,
            closed_reason=verdict.closed_reason,
            note=verdict.note,
            warnings=list(verdict.warnings),
        )


class ReservationTransition(BaseModel):
    version: Optional[int] = Field(default=None, ge=1)


class ReservationRead(BaseModel):
    reservation_id: int
    style: ReservationStyle
    resource_id: Optional[int]
    user_id: int
    status: ReservationStatus
    version: int
    starts_at: datetime
    ends_at: datetime
    slot_date: Optional[date] = None
    slot_time: Optional[str] = None
    duration_minutes: Optional[int] = None

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(business_tz()).isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            style=reservation.style,
            resource_id=reservation.resource_id,
            user_id=reservation.user_id,
            status=reservation.status,
            version=reservation.version,
            starts_at=utc_naive_to_local(reservation.starts_at),
            ends_at=utc_naive_to_local(reservation.ends_at),
            slot_date=reservation.slot_date,
            slot_time=format_time_of_day(reservation.slot_minute) if reservation.slot_minute is not None else None,
            duration_minutes=reservation.duration_minutes,
        )


class CommitRead(BaseModel):
    verdict: AdmissionVerdictRead
    reservation: ReservationRead


class SlotAvailabilityRead(BaseModel):
    time: str
    capacity: int
    booked: int
    spill: int
    remaining: int
    is_full: bool
    blocked_by_spill: bool
    offerable: bool

    @classmethod
    def from_domain(cls, item: SlotAvailability) -> "SlotAvailabilityRead":
        state = item.state
        return cls(
            time=format_time_of_day(state.time_of_day),
            capacity=state.capacity,
            booked=state.booked_count,
            spill=state.spill_count,
            remaining=state.remaining,
            is_full=state.is_full,
            blocked_by_spill=state.blocked_by_spill,
            offerable=item.offerable,
        )


class CalendarDayRead(BaseModel):
    date: date
    open: bool
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    closed_reason: Optional[ClosedReason] = None
    note: Optional[str] = None

    @classmethod
    def from_domain(cls, day: DayOpenness) -> "CalendarDayRead":
        return cls(
            date=day.day,
            open=day.open,
            open_time=format_time_of_day(day.open_time) if day.open_time is not None else None,
            close_time=format_time_of_day(day.close_time) if day.close_time is not None else None,
            closed_reason=day.closed_reason,
            note=day.note,
        )


class DayAvailabilityRead(BaseModel):
    day: CalendarDayRead
    slots: List[SlotAvailabilityRead]

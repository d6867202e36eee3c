from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from ..models import ReservationStatus
from .calendar import DayOpenness
from .entities import ACTIVE_STATUSES, SlotReservation
from .errors import InvalidInputError


@dataclass(frozen=True)
class SlotQueue:
    time_of_day: int
    capacity: int


@dataclass(frozen=True)
class SlotState:
    time_of_day: int
    capacity: int
    booked_count: int = 0
    spill_count: int = 0

    @property
    def blocked_by_spill(self) -> bool:
        return self.spill_count > 0

    @property
    def is_full(self) -> bool:
        return self.booked_count + self.spill_count >= self.capacity

    @property
    def remaining(self) -> int:
        return max(self.capacity - self.booked_count - self.spill_count, 0)


def validate_catalog(catalog: Sequence[SlotQueue]) -> None:
    seen: set[int] = set()
    for queue in catalog:
        if queue.time_of_day in seen:
            raise InvalidInputError(f"duplicate slot time {queue.time_of_day}")
        if queue.capacity < 0:
            raise InvalidInputError("slot capacity must not be negative")
        seen.add(queue.time_of_day)


def slot_capacity(queue: SlotQueue, pool_size: Optional[int]) -> int:
    """Pool size wins when units are interchangeable; otherwise the queue's own count."""
    return pool_size if pool_size is not None else queue.capacity


def compute_slot_state(
    day: date,
    catalog: Sequence[SlotQueue],
    existing: Iterable[SlotReservation],
    *,
    buffer_minutes: int,
    pool_size: Optional[int] = None,
    blocking_statuses: frozenset[ReservationStatus] = ACTIVE_STATUSES,
) -> dict[int, SlotState]:
    """
    Count direct bookings and spill per catalog slot for `day`.

    A reservation occupies [start, start + duration + buffer). It counts once towards the
    slot it starts in, and once as spill towards every catalog slot strictly inside
    (start, occupied_end). Spill never crosses into the next date.
    """
    if buffer_minutes < 0:
        raise InvalidInputError("buffer_minutes must not be negative")
    validate_catalog(catalog)

    booked: dict[int, int] = {}
    spill: dict[int, int] = {}
    for reservation in existing:
        if reservation.day != day or reservation.status not in blocking_statuses:
            continue
        booked[reservation.time_of_day] = booked.get(reservation.time_of_day, 0) + 1
        occupied_end = reservation.occupied_end(buffer_minutes)
        for queue in catalog:
            if reservation.time_of_day < queue.time_of_day < occupied_end:
                spill[queue.time_of_day] = spill.get(queue.time_of_day, 0) + 1

    return {
        queue.time_of_day: SlotState(
            time_of_day=queue.time_of_day,
            capacity=slot_capacity(queue, pool_size),
            booked_count=booked.get(queue.time_of_day, 0),
            spill_count=spill.get(queue.time_of_day, 0),
        )
        for queue in sorted(catalog, key=lambda q: q.time_of_day)
    }


def is_offerable(openness: DayOpenness, state: Optional[SlotState]) -> bool:
    if state is None:
        return False
    return openness.admits(state.time_of_day) and not state.is_full


def offerable_slots(openness: DayOpenness, states: Mapping[int, SlotState]) -> list[int]:
    return [minute for minute, state in states.items() if is_offerable(openness, state)]

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from ..models import Reservation, ReservationStatus, ReservationStyle, Resource
from .entities import IntervalReservation, SlotReservation
from .services import SchedulingConfig


class ResourceRepository(Protocol):
    async def get(self, resource_id: int) -> Resource | None: ...

    async def get_for_update(self, resource_id: int) -> Resource | None: ...


class SchedulingConfigRepository(Protocol):
    async def load(self) -> SchedulingConfig: ...

    async def lock_pool(self) -> None: ...


class ReservationRepository(Protocol):
    async def list_for_resource(
        self,
        resource_id: int,
        start: datetime,
        end: datetime,
    ) -> list[IntervalReservation]: ...

    async def list_for_date(self, day: date) -> list[SlotReservation]: ...

    async def create(
        self,
        *,
        style: ReservationStyle,
        resource_id: int | None,
        user_id: int,
        starts_at: datetime,
        ends_at: datetime,
        status: ReservationStatus,
        slot_date: date | None = None,
        slot_minute: int | None = None,
        duration_minutes: int | None = None,
    ) -> Reservation: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_user_for_update(self, reservation_id: int, user_id: int) -> Reservation | None: ...

    async def get_for_user(self, reservation_id: int, user_id: int) -> Reservation | None: ...

    async def list_by_user(
        self,
        user_id: int,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

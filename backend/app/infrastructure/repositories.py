from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, tzinfo
from typing import Iterator, List, Optional, cast

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.calendar import BusinessCalendar, DaySchedule
from ..domain.calendar import Holiday as HolidayEntry
from ..domain.entities import IntervalReservation, SlotReservation
from ..domain.errors import StoreUnavailableError
from ..domain.repositories import ReservationRepository, ResourceRepository, SchedulingConfigRepository
from ..domain.services import SchedulingConfig
from ..domain.slots import SlotQueue as SlotQueueEntry
from ..models import (
    BusinessHour,
    Holiday,
    Reservation,
    ReservationStatus,
    ReservationStyle,
    Resource,
    ResourceKind,
    SchedulingSetting,
    SlotQueue,
)
from ..utils.time import to_utc_naive, utc_naive_to_aware, utc_now


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Surface driver/connection failures as StoreUnavailableError; constraint violations pass through."""
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"{operation} failed") from exc


def to_interval_record(row: Reservation) -> IntervalReservation:
    return IntervalReservation(
        id=row.id,
        resource_id=cast(int, row.resource_id),
        start=utc_naive_to_aware(row.starts_at),
        end=utc_naive_to_aware(row.ends_at),
        status=row.status,
    )


def to_slot_record(row: Reservation) -> SlotReservation:
    return SlotReservation(
        id=row.id,
        resource_id=row.resource_id,
        day=cast(date, row.slot_date),
        time_of_day=cast(int, row.slot_minute),
        duration_minutes=row.duration_minutes or 0,
        status=row.status,
    )


class SqlAlchemyResourceRepository(ResourceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, resource_id: int) -> Resource | None:
        with _store_errors("resource lookup"):
            return await self.session.get(Resource, resource_id)

    async def get_for_update(self, resource_id: int) -> Resource | None:
        with _store_errors("resource lock"):
            result = await self.session.scalar(select(Resource).where(Resource.id == resource_id).with_for_update())
        return result if isinstance(result, Resource) else None


class SqlAlchemySchedulingConfigRepository(SchedulingConfigRepository):
    def __init__(self, session: AsyncSession, *, tz: tzinfo, min_lead_minutes: int) -> None:
        self.session = session
        self.tz = tz
        self.min_lead_minutes = min_lead_minutes

    async def load(self) -> SchedulingConfig:
        with _store_errors("scheduling config load"):
            hours = (await self.session.execute(select(BusinessHour))).scalars().all()
            holidays = (await self.session.execute(select(Holiday).order_by(Holiday.holiday_date))).scalars().all()
            queues = (await self.session.execute(select(SlotQueue).order_by(SlotQueue.time_of_day))).scalars().all()
            setting = await self.session.scalar(select(SchedulingSetting).order_by(SchedulingSetting.id).limit(1))
            pool_size = await self.session.scalar(
                select(func.count(Resource.id)).where(
                    Resource.kind == ResourceKind.TECHNICIAN,
                    Resource.is_active.is_(True),
                )
            )

        calendar = BusinessCalendar.build(
            {
                hour.day_of_week: DaySchedule(
                    is_open=hour.is_open,
                    open_time=hour.open_minute,
                    close_time=hour.close_minute,
                )
                for hour in hours
            },
            [HolidayEntry(day=h.holiday_date, note=h.note) for h in holidays],
        )
        return SchedulingConfig(
            calendar=calendar,
            catalog=tuple(SlotQueueEntry(time_of_day=q.time_of_day, capacity=q.capacity) for q in queues),
            buffer_minutes=setting.buffer_minutes if setting is not None else 0,
            pool_size=int(pool_size or 0),
            use_pool_capacity=setting.use_pool_capacity if setting is not None else False,
            min_lead_minutes=self.min_lead_minutes,
            tz=self.tz,
        )

    async def lock_pool(self) -> None:
        with _store_errors("slot pool lock"):
            await self.session.execute(select(SlotQueue.id).with_for_update())


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_for_resource(
        self,
        resource_id: int,
        start: datetime,
        end: datetime,
    ) -> List[IntervalReservation]:
        stmt: Select[tuple[Reservation]] = select(Reservation).where(
            Reservation.resource_id == resource_id,
            Reservation.style == ReservationStyle.INTERVAL,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.starts_at <= to_utc_naive(end),
            Reservation.ends_at >= to_utc_naive(start),
        )
        with _store_errors("reservation query"):
            rows = (await self.session.execute(stmt)).scalars().all()
        return [to_interval_record(row) for row in rows]

    async def list_for_date(self, day: date) -> List[SlotReservation]:
        stmt: Select[tuple[Reservation]] = select(Reservation).where(
            Reservation.style == ReservationStyle.SLOT,
            Reservation.slot_date == day,
            Reservation.status != ReservationStatus.CANCELLED,
        )
        with _store_errors("reservation query"):
            rows = (await self.session.execute(stmt)).scalars().all()
        return [to_slot_record(row) for row in rows]

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
    ) -> Reservation:
        now = to_utc_naive(utc_now())
        reservation = Reservation(
            style=style,
            resource_id=resource_id,
            user_id=user_id,
            starts_at=to_utc_naive(starts_at),
            ends_at=to_utc_naive(ends_at),
            slot_date=slot_date,
            slot_minute=slot_minute,
            duration_minutes=duration_minutes,
            status=status,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        with _store_errors("reservation write"):
            await self.session.flush()
        return reservation

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        with _store_errors("reservation lock"):
            result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def get_for_user_for_update(self, reservation_id: int, user_id: int) -> Optional[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.id == reservation_id, Reservation.user_id == user_id)
            .with_for_update()
        )
        with _store_errors("reservation lock"):
            result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def get_for_user(self, reservation_id: int, user_id: int) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id, Reservation.user_id == user_id)
        with _store_errors("reservation query"):
            result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def list_by_user(
        self,
        user_id: int,
        status: ReservationStatus | None = None,
    ) -> List[Reservation]:
        stmt: Select[tuple[Reservation]] = (
            select(Reservation).where(Reservation.user_id == user_id).order_by(Reservation.starts_at.asc())
        )
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        with _store_errors("reservation query"):
            rows = (await self.session.execute(stmt)).scalars().all()
        return list(rows)

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        with _store_errors("reservation write"):
            await self.session.flush()
        return reservation

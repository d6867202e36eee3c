from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, Boolean, Date, DateTime, Integer, SmallInteger, String


class Base(DeclarativeBase):
    pass


class ResourceKind(StrEnum):
    VEHICLE = "vehicle"
    TECHNICIAN = "technician"


class ReservationStyle(StrEnum):
    INTERVAL = "interval"
    SLOT = "slot"


class ReservationStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


APPROVER_ROLES = frozenset({"admin", "approver"})


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="member")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Resource(Base):
    """A vehicle or a technician; technicians also make up the interchangeable slot pool."""

    __tablename__ = "resources"
    __table_args__ = (Index("idx_resources_kind", "kind"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    kind: Mapped[ResourceKind] = mapped_column(_str_enum(ResourceKind), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    reservations: Mapped[list["Reservation"]] = relationship(back_populates="resource")


class BusinessHour(Base):
    __tablename__ = "business_hours"
    __table_args__ = (
        UniqueConstraint("day_of_week", name="uq_business_hours_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="chk_business_hours_day"),
        CheckConstraint(
            "open_minute IS NULL OR close_minute IS NULL OR open_minute <= close_minute",
            name="chk_business_hours_range",
        ),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    # 0=Sunday..6=Saturday
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    open_minute: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    close_minute: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)


class Holiday(Base):
    __tablename__ = "holidays"
    __table_args__ = (UniqueConstraint("holiday_date", name="uq_holidays_date"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class SlotQueue(Base):
    """Daily slot catalog; its rows are locked to serialise slot commits."""

    __tablename__ = "slot_queues"
    __table_args__ = (
        UniqueConstraint("time_of_day", name="uq_slot_queues_time"),
        CheckConstraint("time_of_day BETWEEN 0 AND 1439", name="chk_slot_queues_time"),
        CheckConstraint("capacity >= 1", name="chk_slot_queues_capacity"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    time_of_day: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class SchedulingSetting(Base):
    __tablename__ = "scheduling_settings"
    __table_args__ = (CheckConstraint("buffer_minutes >= 0", name="chk_settings_buffer"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    buffer_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    use_pool_capacity: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="chk_res_time"),
        CheckConstraint(
            "style <> 'slot' OR (slot_date IS NOT NULL AND slot_minute IS NOT NULL AND duration_minutes > 0)",
            name="chk_res_slot_fields",
        ),
        CheckConstraint("style <> 'interval' OR resource_id IS NOT NULL", name="chk_res_interval_resource"),
        Index("idx_res_resource", "resource_id", "starts_at"),
        Index("idx_res_slot_date", "slot_date"),
        Index("idx_res_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    style: Mapped[ReservationStyle] = mapped_column(_str_enum(ReservationStyle), nullable=False)
    resource_id: Mapped[Optional[int]] = mapped_column(ForeignKey("resources.id"), nullable=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # UTC naive; for slot bookings starts_at + duration_minutes
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    slot_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    slot_minute: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[ReservationStatus] = mapped_column(
        _str_enum(ReservationStatus),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    resource: Mapped[Optional["Resource"]] = relationship(back_populates="reservations")

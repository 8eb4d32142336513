from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Enum, Float, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Integer, String, Text


class Base(DeclarativeBase):
    pass


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    HOST_CANCELLED = "host_cancelled"
    SPACE_DELETED = "space_deleted"
    COMPLETED = "completed"


TERMINAL_BOOKING_STATUSES = frozenset(
    {
        BookingStatus.CANCELLED,
        BookingStatus.HOST_CANCELLED,
        BookingStatus.SPACE_DELETED,
        BookingStatus.COMPLETED,
    }
)

OPEN_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class ParkingSpace(Base):
    __tablename__ = "parking_spaces"
    __table_args__ = (
        CheckConstraint("max_vehicles >= 1", name="chk_spaces_max_vehicles"),
        Index("idx_spaces_host", "host_id"),
        Index("idx_spaces_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(512), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    price_per_hour: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    price_per_day: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    max_vehicles: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    repeating_weekly: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=True)
    day_availability_schedule: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    # Pre-schedule columns, read only as a fallback.
    availability_start: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    availability_end: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    available_days: Mapped[Optional[list[int]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    # bookings outlive their space; the row keeps a null space_id
    bookings: Mapped[list["Booking"]] = relationship(back_populates="space", passive_deletes=True)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="chk_bookings_time"),
        CheckConstraint("vehicle_count >= 1", name="chk_bookings_vehicle_count"),
        Index("idx_bookings_space", "space_id"),
        Index("idx_bookings_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    space_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("parking_spaces.id", ondelete="SET NULL"), nullable=True
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    vehicle_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    space: Mapped[Optional["ParkingSpace"]] = relationship(back_populates="bookings")

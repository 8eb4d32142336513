from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import bindparam, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.errors import CapacityOracleUnavailableError, PersistenceFailureError
from ..domain.repositories import BookingRepository, CapacityOracle, SpaceRepository
from ..domain.schedule import AvailabilitySchedule, schedule_for_space
from ..models import OPEN_BOOKING_STATUSES, Booking, BookingStatus, ParkingSpace
from ..utils.time import utc_now_naive


def _persistence_failure(exc: SQLAlchemyError) -> PersistenceFailureError:
    return PersistenceFailureError(str(getattr(exc, "orig", None) or exc))


class SqlAlchemySpaceRepository(SpaceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, space_id: int) -> ParkingSpace | None:
        result = await self.session.get(ParkingSpace, space_id)
        return result if isinstance(result, ParkingSpace) else None

    async def get_availability(self, space_id: int) -> AvailabilitySchedule | None:
        stmt = select(ParkingSpace).where(ParkingSpace.id == space_id, ParkingSpace.is_active.is_(True))
        space = await self.session.scalar(stmt)
        if space is None:
            return None
        return schedule_for_space(space)

    async def search_active(self, query: str | None = None) -> list[ParkingSpace]:
        stmt = select(ParkingSpace).where(ParkingSpace.is_active.is_(True))
        if query:
            stmt = stmt.where(ParkingSpace.address.icontains(query, autoescape=True))
        rows = await self.session.scalars(stmt.order_by(ParkingSpace.id))
        return list(rows.all())

    async def list_by_host(self, host_id: int) -> list[ParkingSpace]:
        stmt = select(ParkingSpace).where(ParkingSpace.host_id == host_id).order_by(ParkingSpace.created_at.desc())
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def create(self, *, host_id: int, fields: dict[str, Any]) -> ParkingSpace:
        now = utc_now_naive()
        space = ParkingSpace(host_id=host_id, created_at=now, updated_at=now, **fields)
        self.session.add(space)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise _persistence_failure(exc) from exc
        return space

    async def set_active(self, space: ParkingSpace, is_active: bool) -> ParkingSpace:
        space.is_active = is_active
        space.updated_at = utc_now_naive()
        self.session.add(space)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise _persistence_failure(exc) from exc
        return space

    async def delete(self, space: ParkingSpace) -> int:
        """Close the space's open bookings as space_deleted, then drop the space.

        Returns how many bookings were closed. Booking rows stay for history
        with their space_id nulled by the foreign key.
        """
        stmt = (
            update(Booking)
            .where(Booking.space_id == space.id, Booking.status.in_(list(OPEN_BOOKING_STATUSES)))
            .values(status=BookingStatus.SPACE_DELETED, updated_at=utc_now_naive())
        )
        try:
            result = await self.session.execute(stmt)
            await self.session.delete(space)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise _persistence_failure(exc) from exc
        return result.rowcount


class SqlFunctionCapacityOracle(CapacityOracle):
    """Calls the backend's stored function that counts free vehicle slots for an interval."""

    def __init__(self, session: AsyncSession, function_name: str) -> None:
        self.session = session
        self.function_name = function_name

    async def query(self, space_id: int, starts_at: datetime, ends_at: datetime) -> int:
        stmt = text(
            f"SELECT {self.function_name}(:p_space_id, :p_start_time, :p_end_time)"
        ).bindparams(
            bindparam("p_space_id", space_id),
            bindparam("p_start_time", starts_at),
            bindparam("p_end_time", ends_at),
        )
        try:
            # savepoint: a failed call must not abort the caller's transaction
            async with self.session.begin_nested():
                value = await self.session.scalar(stmt)
        except SQLAlchemyError as exc:
            raise CapacityOracleUnavailableError(str(exc)) from exc
        if value is None:
            raise CapacityOracleUnavailableError("capacity function returned no value")
        return int(value)


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        *,
        user_id: int,
        space_id: int,
        start_time: datetime,
        end_time: datetime,
        vehicle_count: int,
        total_price: Decimal,
        status: BookingStatus,
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            user_id=user_id,
            space_id=space_id,
            start_time=start_time,
            end_time=end_time,
            vehicle_count=vehicle_count,
            total_price=total_price,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise _persistence_failure(exc) from exc
        return booking

    async def get_for_user(self, booking_id: int, user_id: int) -> Booking | None:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.space))
            .where(Booking.id == booking_id, Booking.user_id == user_id)
        )
        return await self.session.scalar(stmt)

    async def list_by_user(self, user_id: int) -> list[Booking]:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.space))
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        rows = await self.session.scalars(stmt)
        return list(rows.all())

    async def cancel(self, booking: Booking) -> Booking:
        self.session.add(booking)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise _persistence_failure(exc) from exc
        return booking

    async def delete(self, booking: Booking) -> None:
        try:
            await self.session.delete(booking)
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise _persistence_failure(exc) from exc

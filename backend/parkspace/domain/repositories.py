from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from ..models import Booking, BookingStatus, ParkingSpace
from .schedule import AvailabilitySchedule


class SpaceRepository(Protocol):
    async def get(self, space_id: int) -> ParkingSpace | None: ...

    async def get_availability(self, space_id: int) -> AvailabilitySchedule | None: ...

    async def search_active(self, query: str | None = None) -> list[ParkingSpace]: ...

    async def list_by_host(self, host_id: int) -> list[ParkingSpace]: ...

    async def create(self, *, host_id: int, fields: dict[str, Any]) -> ParkingSpace: ...

    async def set_active(self, space: ParkingSpace, is_active: bool) -> ParkingSpace: ...

    async def delete(self, space: ParkingSpace) -> int:
        """Drop the space, closing its open bookings. Returns how many were closed."""
        ...


class CapacityOracle(Protocol):
    async def query(self, space_id: int, starts_at: datetime, ends_at: datetime) -> int:
        """Free vehicle slots for the UTC interval. Raises CapacityOracleUnavailableError."""
        ...


class BookingRepository(Protocol):
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
    ) -> Booking: ...

    async def get_for_user(self, booking_id: int, user_id: int) -> Booking | None: ...

    async def list_by_user(self, user_id: int) -> list[Booking]: ...

    async def cancel(self, booking: Booking) -> Booking: ...

    async def delete(self, booking: Booking) -> None: ...

"""Interactive booking composition for a single space."""

from __future__ import annotations

from dataclasses import replace
from datetime import date

from ..domain.errors import BookingRejectedError, DateNotBookableError
from ..domain.repositories import BookingRepository, CapacityOracle, SpaceRepository
from ..domain.schedule import AvailabilitySchedule, TimeOfDay, schedule_for_space
from ..domain.services import BookingRequest, CapacitySnapshot, combine_interval, validate_booking
from ..models import Booking, ParkingSpace
from .availability import first_bookable, next_after, previous_before
from .bookings import clamp_vehicle_count, load_bookable_space, reject_past_date, submit_booking
from .capacity import CapacityMonitor

DEFAULT_START = TimeOfDay(9, 0)
DEFAULT_END = TimeOfDay(18, 0)


class BookingComposer:
    """
    Holds a draft booking while the driver adjusts date, times and vehicle count.

    Capacity is re-fetched on every change of date or time and never carried over
    from a previous interval.
    """

    def __init__(self, space: ParkingSpace, oracle: CapacityOracle, *, today: date) -> None:
        self.space = space
        self.today = today
        self.schedule: AvailabilitySchedule = schedule_for_space(space)
        self.monitor = CapacityMonitor(oracle, space_id=space.id, max_vehicles=space.max_vehicles)
        self.request = BookingRequest(
            space_id=space.id,
            date=today,
            start_time=DEFAULT_START,
            end_time=DEFAULT_END,
            vehicle_count=1,
        )

    @classmethod
    async def load(
        cls,
        space_repo: SpaceRepository,
        oracle: CapacityOracle,
        *,
        space_id: int,
        today: date,
    ) -> "BookingComposer":
        space = await load_bookable_space(space_repo, space_id)
        composer = cls(space, oracle, today=today)
        start_day = first_bookable(composer.schedule, today)
        if start_day is not None:
            composer.request = replace(composer.request, date=start_day)
        await composer.refresh()
        return composer

    @property
    def snapshot(self) -> CapacitySnapshot | None:
        return self.monitor.snapshot

    async def refresh(self) -> CapacitySnapshot | None:
        starts_at, ends_at = combine_interval(self.request.date, self.request.start_time, self.request.end_time)
        snapshot = await self.monitor.refresh(starts_at, ends_at)
        if snapshot is not None:
            self.request = replace(
                self.request,
                vehicle_count=clamp_vehicle_count(self.request.vehicle_count, snapshot.available_slots),
            )
        return snapshot

    async def change(
        self,
        *,
        day: date | None = None,
        start_time: TimeOfDay | None = None,
        end_time: TimeOfDay | None = None,
    ) -> CapacitySnapshot | None:
        if day is not None and day < self.today:
            raise DateNotBookableError()
        updated = replace(
            self.request,
            date=day or self.request.date,
            start_time=start_time or self.request.start_time,
            end_time=end_time or self.request.end_time,
        )
        if updated == self.request and self.monitor.snapshot is not None:
            return self.monitor.snapshot
        self.request = updated
        self.monitor.invalidate()
        return await self.refresh()

    def set_vehicle_count(self, count: int) -> int:
        snapshot = self.monitor.snapshot
        if snapshot is not None:
            count = clamp_vehicle_count(count, snapshot.available_slots)
        self.request = replace(self.request, vehicle_count=max(count, 1))
        return self.request.vehicle_count

    async def step_forward(self) -> date | None:
        target = next_after(self.schedule, self.request.date)
        if target is not None:
            await self.change(day=target)
        return target

    async def step_back(self) -> date | None:
        target = previous_before(self.schedule, self.request.date, today=self.today)
        if target is not None:
            await self.change(day=target)
        return target

    def rejection(self) -> BookingRejectedError | None:
        snapshot = self.monitor.snapshot
        if snapshot is None:
            return None
        try:
            reject_past_date(self.request, self.today)
            validate_booking(self.request, self.schedule, snapshot)
        except BookingRejectedError as exc:
            return exc
        return None

    async def submit(self, booking_repo: BookingRepository, *, actor_id: int) -> Booking:
        snapshot = self.monitor.snapshot or await self.refresh()
        if snapshot is None:
            raise RuntimeError("draft changed while checking capacity, submit again")
        return await submit_booking(
            self.space,
            booking_repo,
            self.monitor.oracle,
            request=self.request,
            actor_id=actor_id,
            snapshot=snapshot,
            today=self.today,
        )

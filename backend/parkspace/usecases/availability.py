from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from ..config import get_settings
from ..domain.errors import SpaceNotFoundError
from ..domain.repositories import SpaceRepository
from ..domain.schedule import (
    AvailabilitySchedule,
    DatedSchedule,
    TimeWindow,
    describe_schedule,
    is_available,
    next_available,
    previous_available,
    resolve_window,
)


@dataclass(frozen=True)
class DayAvailability:
    date: date
    available: bool
    window: Optional[TimeWindow]
    next_available: Optional[date]
    previous_available: Optional[date]
    schedule: list[tuple[str, Optional[TimeWindow]]]


def scan_bound_for(schedule: AvailabilitySchedule) -> int:
    settings = get_settings()
    if isinstance(schedule, DatedSchedule):
        return settings.dated_scan_days
    return settings.repeating_scan_days


def next_after(schedule: AvailabilitySchedule, day: date) -> date | None:
    return next_available(schedule, day + timedelta(days=1), bound=scan_bound_for(schedule))


def previous_before(schedule: AvailabilitySchedule, day: date, *, today: date) -> date | None:
    return previous_available(schedule, day, today=today, bound=scan_bound_for(schedule))


def first_bookable(schedule: AvailabilitySchedule, today: date) -> date | None:
    return next_available(schedule, today, bound=scan_bound_for(schedule))


def day_availability(schedule: AvailabilitySchedule, day: date, *, today: date) -> DayAvailability:
    available = is_available(schedule, day)
    return DayAvailability(
        date=day,
        available=available,
        window=resolve_window(schedule, day) if available else None,
        next_available=next_after(schedule, max(day, today - timedelta(days=1))),
        previous_available=previous_before(schedule, day, today=today),
        schedule=describe_schedule(schedule),
    )


async def get_space_availability(
    space_repo: SpaceRepository,
    *,
    space_id: int,
    day: date,
    today: date,
) -> DayAvailability:
    schedule = await space_repo.get_availability(space_id)
    if schedule is None:
        raise SpaceNotFoundError("parking space not found")
    return day_availability(schedule, day, today=today)

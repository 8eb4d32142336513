from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..domain.errors import ForbiddenError, InvalidListingError, SpaceNotFoundError
from ..domain.repositories import SpaceRepository
from ..domain.schedule import DatedSchedule, schedule_from_record
from ..models import ParkingSpace


def _check_schedule(
    repeating: bool,
    entries: Mapping[str, Any] | None,
    legacy_days: Iterable[int] | None,
    legacy_start: str | None,
    legacy_end: str | None,
) -> None:
    try:
        schedule = schedule_from_record(
            repeating=repeating,
            entries=entries,
            legacy_days=legacy_days,
            legacy_start=legacy_start,
            legacy_end=legacy_end,
        )
    except ValueError as exc:
        raise InvalidListingError(f"invalid availability schedule: {exc}") from exc

    windows = list(schedule.entries.values())
    if not isinstance(schedule, DatedSchedule) and schedule.legacy is not None and schedule.legacy.window:
        windows.append(schedule.legacy.window)
    for window in windows:
        if window.end <= window.start:
            raise InvalidListingError(f"availability end {window.end} must be after start {window.start}")


async def create_space(
    space_repo: SpaceRepository,
    *,
    host_id: int,
    title: str,
    address: str,
    latitude: float,
    longitude: float,
    price_per_hour: Decimal | None,
    price_per_day: Decimal | None,
    max_vehicles: int,
    repeating_weekly: bool = True,
    day_availability_schedule: Mapping[str, Any] | None = None,
    availability_start: str | None = None,
    availability_end: str | None = None,
    available_days: list[int] | None = None,
    description: str | None = None,
) -> ParkingSpace:
    if not title.strip() or not address.strip():
        raise InvalidListingError("title and address are required")
    if latitude == 0 or longitude == 0:
        raise InvalidListingError("location must be set")
    if not price_per_hour and not price_per_day:
        raise InvalidListingError("an hourly or daily rate is required")
    for rate in (price_per_hour, price_per_day):
        if rate is not None and rate < 0:
            raise InvalidListingError("rates cannot be negative")
    if max_vehicles < 1:
        raise InvalidListingError("max_vehicles must be >= 1")
    _check_schedule(repeating_weekly, day_availability_schedule, available_days, availability_start, availability_end)

    return await space_repo.create(
        host_id=host_id,
        fields={
            "title": title.strip(),
            "description": description or None,
            "address": address.strip(),
            "latitude": latitude,
            "longitude": longitude,
            "price_per_hour": price_per_hour,
            "price_per_day": price_per_day,
            "max_vehicles": max_vehicles,
            "repeating_weekly": repeating_weekly,
            "day_availability_schedule": dict(day_availability_schedule or {}),
            "availability_start": availability_start or None,
            "availability_end": availability_end or None,
            "available_days": available_days,
            "is_active": True,
        },
    )


async def _owned_space(space_repo: SpaceRepository, space_id: int, host_id: int) -> ParkingSpace:
    space = await space_repo.get(space_id)
    if space is None:
        raise SpaceNotFoundError("parking space not found")
    if space.host_id != host_id:
        raise ForbiddenError("not your listing")
    return space


async def set_space_active(
    space_repo: SpaceRepository,
    *,
    space_id: int,
    host_id: int,
    is_active: bool,
) -> ParkingSpace:
    space = await _owned_space(space_repo, space_id, host_id)
    if space.is_active == is_active:
        return space
    return await space_repo.set_active(space, is_active)


async def delete_space(
    space_repo: SpaceRepository, *, space_id: int, host_id: int
) -> tuple[ParkingSpace, int]:
    """Remove a listing. Its pending and confirmed bookings become space_deleted."""
    space = await _owned_space(space_repo, space_id, host_id)
    closed = await space_repo.delete(space)
    return space, closed


async def list_host_spaces(space_repo: SpaceRepository, *, host_id: int) -> list[ParkingSpace]:
    return await space_repo.list_by_host(host_id)


async def search_spaces(space_repo: SpaceRepository, *, query: str | None = None) -> list[ParkingSpace]:
    cleaned = query.strip() if query else None
    return await space_repo.search_active(cleaned or None)

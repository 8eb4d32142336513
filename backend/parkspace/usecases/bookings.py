from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from ..domain.errors import (
    BookingNotFoundError,
    BookingRejectedError,
    CancelNotAllowedError,
    DateNotBookableError,
    DeleteNotAllowedError,
    SpaceNotFoundError,
)
from ..domain.repositories import BookingRepository, CapacityOracle, SpaceRepository
from ..domain.schedule import schedule_for_space
from ..domain.services import (
    BookingRequest,
    CapacitySnapshot,
    combine_interval,
    compute_price,
    rates_for_space,
    validate_booking,
)
from ..models import TERMINAL_BOOKING_STATUSES, Booking, BookingStatus, ParkingSpace
from ..utils.time import local_naive_to_utc_naive, local_today, utc_now_naive
from .capacity import fetch_capacity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    snapshot: CapacitySnapshot
    starts_at: datetime
    ends_at: datetime
    total_price: Decimal | None
    rejection: BookingRejectedError | None
    suggested_vehicle_count: int


def clamp_vehicle_count(requested: int, available: int) -> int:
    """Keep the vehicle input within what the space can still take, never below one."""
    return max(min(requested, available), 1)


def reject_past_date(request: BookingRequest, today: date) -> None:
    """Past dates are never bookable, whatever the schedule says."""
    if request.date < today:
        raise DateNotBookableError()


async def load_bookable_space(space_repo: SpaceRepository, space_id: int) -> ParkingSpace:
    space = await space_repo.get(space_id)
    if space is None or not space.is_active:
        raise SpaceNotFoundError("parking space not found")
    return space


async def quote_booking(
    space_repo: SpaceRepository,
    oracle: CapacityOracle,
    *,
    request: BookingRequest,
    today: date | None = None,
) -> Quote:
    space = await load_bookable_space(space_repo, request.space_id)
    starts_at, ends_at = combine_interval(request.date, request.start_time, request.end_time)
    snapshot = await fetch_capacity(
        oracle,
        space_id=space.id,
        max_vehicles=space.max_vehicles,
        starts_at=starts_at,
        ends_at=ends_at,
    )

    rejection: BookingRejectedError | None = None
    total_price: Decimal | None = None
    try:
        reject_past_date(request, today or local_today())
        validate_booking(request, schedule_for_space(space), snapshot)
    except BookingRejectedError as exc:
        rejection = exc
    else:
        total_price = compute_price(rates_for_space(space), starts_at, ends_at)

    return Quote(
        snapshot=snapshot,
        starts_at=starts_at,
        ends_at=ends_at,
        total_price=total_price,
        rejection=rejection,
        suggested_vehicle_count=clamp_vehicle_count(request.vehicle_count, snapshot.available_slots),
    )


async def submit_booking(
    space: ParkingSpace,
    booking_repo: BookingRepository,
    oracle: CapacityOracle,
    *,
    request: BookingRequest,
    actor_id: int,
    snapshot: CapacitySnapshot,
    today: date | None = None,
) -> Booking:
    """
    Validate against the snapshot the driver saw, then re-check capacity once more
    right before the write. The write is skipped if either check fails.
    """
    reject_past_date(request, today or local_today())
    schedule = schedule_for_space(space)
    starts_at, ends_at = validate_booking(request, schedule, snapshot)
    total_price = compute_price(rates_for_space(space), starts_at, ends_at)

    final_snapshot = await fetch_capacity(
        oracle,
        space_id=space.id,
        max_vehicles=space.max_vehicles,
        starts_at=starts_at,
        ends_at=ends_at,
    )
    try:
        validate_booking(request, schedule, final_snapshot)
    except BookingRejectedError:
        logger.info(
            "final capacity check rejected booking for space %s: %s requested, %s free",
            space.id,
            request.vehicle_count,
            final_snapshot.available_slots,
        )
        raise

    return await booking_repo.create(
        user_id=actor_id,
        space_id=space.id,
        start_time=local_naive_to_utc_naive(starts_at),
        end_time=local_naive_to_utc_naive(ends_at),
        vehicle_count=request.vehicle_count,
        total_price=total_price,
        status=BookingStatus.CONFIRMED,
    )


async def create_booking(
    space_repo: SpaceRepository,
    booking_repo: BookingRepository,
    oracle: CapacityOracle,
    *,
    request: BookingRequest,
    actor_id: int,
    today: date | None = None,
) -> tuple[Booking, ParkingSpace]:
    space = await load_bookable_space(space_repo, request.space_id)
    starts_at, ends_at = combine_interval(request.date, request.start_time, request.end_time)
    snapshot = await fetch_capacity(
        oracle,
        space_id=space.id,
        max_vehicles=space.max_vehicles,
        starts_at=starts_at,
        ends_at=ends_at,
    )
    booking = await submit_booking(
        space,
        booking_repo,
        oracle,
        request=request,
        actor_id=actor_id,
        snapshot=snapshot,
        today=today,
    )
    return booking, space


async def cancel_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor_id: int,
) -> tuple[Booking, BookingStatus]:
    """Driver cancellation. Only confirmed bookings can be cancelled."""
    booking = await booking_repo.get_for_user(booking_id, actor_id)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    previous = booking.status
    if previous != BookingStatus.CONFIRMED:
        raise CancelNotAllowedError(f"cannot cancel a {previous} booking")

    booking.status = BookingStatus.CANCELLED
    booking.updated_at = utc_now_naive()
    return await booking_repo.cancel(booking), previous


async def delete_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
    actor_id: int,
    now: datetime | None = None,
) -> Booking:
    """Remove a booking from the driver's history once it is finished or over."""
    booking = await booking_repo.get_for_user(booking_id, actor_id)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    current = now or utc_now_naive()
    if booking.status not in TERMINAL_BOOKING_STATUSES and booking.end_time >= current:
        raise DeleteNotAllowedError("only finished or past bookings can be deleted")
    await booking_repo.delete(booking)
    return booking


async def list_user_bookings(booking_repo: BookingRepository, *, actor_id: int) -> list[Booking]:
    return await booking_repo.list_by_user(actor_id)

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterator, List, Optional

import pytest
from parkspace.domain.errors import (
    BookingNotFoundError,
    CancelNotAllowedError,
    CapacityOracleUnavailableError,
    DateNotBookableError,
    DeleteNotAllowedError,
    InsufficientCapacityError,
    SpaceNotFoundError,
)
from parkspace.domain.schedule import TimeOfDay
from parkspace.domain.services import BookingRequest
from parkspace.models import Booking, BookingStatus, ParkingSpace
from parkspace.usecases import bookings as uc
from parkspace.utils.time import local_naive_to_utc_naive

SUNDAY = date(2026, 10, 18)
MONDAY = date(2026, 10, 19)


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _space(**overrides: object) -> ParkingSpace:
    now = _utc_now_naive()
    fields: dict = dict(
        id=7,
        host_id=2,
        title="Driveway",
        address="12 Galle Road, Colombo",
        latitude=6.9,
        longitude=79.85,
        price_per_hour=Decimal("100"),
        price_per_day=Decimal("1000"),
        max_vehicles=3,
        is_active=True,
        repeating_weekly=True,
        day_availability_schedule={"1": {"startTime": "09:00", "endTime": "18:00"}},
        availability_start=None,
        availability_end=None,
        available_days=None,
        created_at=now,
        updated_at=now,
    )
    fields.update(overrides)
    return ParkingSpace(**fields)


def _request(vehicles: int = 1, day: date = MONDAY) -> BookingRequest:
    return BookingRequest(
        space_id=7,
        date=day,
        start_time=TimeOfDay(10, 0),
        end_time=TimeOfDay(11, 30),
        vehicle_count=vehicles,
    )


class FakeSpaceRepo:
    def __init__(self, space: Optional[ParkingSpace]) -> None:
        self.space = space

    async def get(self, space_id: int) -> Optional[ParkingSpace]:
        return self.space


class FakeOracle:
    """Answers queries in order; an exception instance in the list is raised instead."""

    def __init__(self, *answers: object) -> None:
        self._answers: Iterator[object] = iter(answers)
        self.calls: List[tuple[int, datetime, datetime]] = []

    async def query(self, space_id: int, starts_at: datetime, ends_at: datetime) -> int:
        self.calls.append((space_id, starts_at, ends_at))
        answer = next(self._answers)
        if isinstance(answer, Exception):
            raise answer
        return int(answer)  # type: ignore[call-overload]


class FakeBookingRepo:
    def __init__(self, booking: Optional[Booking] = None) -> None:
        self.booking = booking
        self.created: Optional[Booking] = None
        self.cancel_called = False
        self.deleted: Optional[Booking] = None

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
        now = _utc_now_naive()
        self.created = Booking(
            id=100,
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
        return self.created

    async def get_for_user(self, booking_id: int, user_id: int) -> Optional[Booking]:
        return self.booking

    async def list_by_user(self, user_id: int) -> List[Booking]:
        return [self.booking] if self.booking else []

    async def cancel(self, booking: Booking) -> Booking:
        self.cancel_called = True
        return booking

    async def delete(self, booking: Booking) -> None:
        self.deleted = booking


def _booking(status: BookingStatus, *, ends_in: timedelta = timedelta(days=1)) -> Booking:
    now = _utc_now_naive()
    return Booking(
        id=100,
        user_id=5,
        space_id=7,
        start_time=now + ends_in - timedelta(hours=2),
        end_time=now + ends_in,
        vehicle_count=1,
        total_price=Decimal("200"),
        status=status,
        created_at=now,
        updated_at=now,
    )


@pytest.mark.asyncio
async def test_quote_returns_price_and_capacity() -> None:
    oracle = FakeOracle(2)
    quote = await uc.quote_booking(FakeSpaceRepo(_space()), oracle, request=_request(), today=SUNDAY)
    assert quote.rejection is None
    assert quote.total_price == Decimal("150")
    assert quote.snapshot.available_slots == 2
    assert quote.snapshot.fallback is False
    _, starts_at, ends_at = oracle.calls[0]
    assert starts_at == local_naive_to_utc_naive(datetime(2026, 10, 19, 10, 0))
    assert ends_at == local_naive_to_utc_naive(datetime(2026, 10, 19, 11, 30))


@pytest.mark.asyncio
async def test_quote_reports_rejection_and_clamps_vehicle_count() -> None:
    quote = await uc.quote_booking(
        FakeSpaceRepo(_space()), FakeOracle(1), request=_request(vehicles=3), today=SUNDAY
    )
    assert isinstance(quote.rejection, InsufficientCapacityError)
    assert quote.total_price is None
    assert quote.suggested_vehicle_count == 1


@pytest.mark.asyncio
async def test_quote_falls_back_to_max_vehicles_when_oracle_down() -> None:
    oracle = FakeOracle(CapacityOracleUnavailableError("timeout"))
    quote = await uc.quote_booking(
        FakeSpaceRepo(_space(max_vehicles=4)), oracle, request=_request(vehicles=4), today=SUNDAY
    )
    assert quote.snapshot.fallback is True
    assert quote.snapshot.available_slots == 4
    assert quote.rejection is None


@pytest.mark.asyncio
@pytest.mark.parametrize("space", [None, _space(is_active=False)])
async def test_quote_rejects_missing_or_inactive_space(space: Optional[ParkingSpace]) -> None:
    with pytest.raises(SpaceNotFoundError):
        await uc.quote_booking(FakeSpaceRepo(space), FakeOracle(1), request=_request(), today=SUNDAY)


@pytest.mark.asyncio
async def test_create_booking_persists_confirmed_booking() -> None:
    oracle = FakeOracle(3, 3)
    repo = FakeBookingRepo()
    booking, space = await uc.create_booking(
        FakeSpaceRepo(_space()),
        repo,
        oracle,
        request=_request(vehicles=2),
        actor_id=5,
        today=SUNDAY,
    )
    assert booking is repo.created
    assert booking.user_id == 5
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.vehicle_count == 2
    assert booking.total_price == Decimal("150")
    assert booking.start_time == local_naive_to_utc_naive(datetime(2026, 10, 19, 10, 0))
    assert space.id == 7
    assert len(oracle.calls) == 2


@pytest.mark.asyncio
async def test_create_booking_aborts_when_final_check_fails() -> None:
    # capacity was free while composing, someone else took it before commit
    oracle = FakeOracle(2, 1)
    repo = FakeBookingRepo()
    with pytest.raises(InsufficientCapacityError) as excinfo:
        await uc.create_booking(FakeSpaceRepo(_space()), repo, oracle, request=_request(vehicles=2), actor_id=5, today=SUNDAY)
    assert excinfo.value.available == 1
    assert repo.created is None


@pytest.mark.asyncio
async def test_create_booking_rejects_before_any_write() -> None:
    repo = FakeBookingRepo()
    with pytest.raises(DateNotBookableError):
        await uc.create_booking(
            FakeSpaceRepo(_space()),
            repo,
            FakeOracle(3, 3),
            request=_request(day=MONDAY + timedelta(days=1)),
            actor_id=5,
            today=SUNDAY,
        )
    assert repo.created is None


@pytest.mark.asyncio
async def test_quote_rejects_past_date_even_when_schedule_allows_it() -> None:
    # Monday is on the schedule, but that Monday has already gone
    quote = await uc.quote_booking(
        FakeSpaceRepo(_space()), FakeOracle(3), request=_request(), today=MONDAY + timedelta(days=1)
    )
    assert isinstance(quote.rejection, DateNotBookableError)
    assert quote.total_price is None


@pytest.mark.asyncio
async def test_create_booking_rejects_past_date_without_writing() -> None:
    repo = FakeBookingRepo()
    with pytest.raises(DateNotBookableError):
        await uc.create_booking(
            FakeSpaceRepo(_space()),
            repo,
            FakeOracle(3, 3),
            request=_request(day=date(2020, 1, 6)),
            actor_id=5,
            today=SUNDAY,
        )
    assert repo.created is None


@pytest.mark.asyncio
async def test_create_booking_for_today_is_allowed() -> None:
    repo = FakeBookingRepo()
    booking, _ = await uc.create_booking(
        FakeSpaceRepo(_space()), repo, FakeOracle(3, 3), request=_request(), actor_id=5, today=MONDAY
    )
    assert booking is repo.created


@pytest.mark.asyncio
async def test_cancel_confirmed_booking() -> None:
    repo = FakeBookingRepo(_booking(BookingStatus.CONFIRMED))
    booking, previous = await uc.cancel_booking(repo, booking_id=100, actor_id=5)
    assert previous == BookingStatus.CONFIRMED
    assert booking.status == BookingStatus.CANCELLED
    assert repo.cancel_called is True


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CANCELLED, BookingStatus.COMPLETED])
async def test_cancel_only_allowed_while_confirmed(status: BookingStatus) -> None:
    repo = FakeBookingRepo(_booking(status))
    with pytest.raises(CancelNotAllowedError):
        await uc.cancel_booking(repo, booking_id=100, actor_id=5)
    assert repo.cancel_called is False


@pytest.mark.asyncio
async def test_cancel_missing_booking() -> None:
    with pytest.raises(BookingNotFoundError):
        await uc.cancel_booking(FakeBookingRepo(None), booking_id=1, actor_id=5)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [
        BookingStatus.CANCELLED,
        BookingStatus.HOST_CANCELLED,
        BookingStatus.SPACE_DELETED,
        BookingStatus.COMPLETED,
    ],
)
async def test_delete_terminal_booking(status: BookingStatus) -> None:
    repo = FakeBookingRepo(_booking(status))
    deleted = await uc.delete_booking(repo, booking_id=100, actor_id=5)
    assert repo.deleted is deleted


@pytest.mark.asyncio
async def test_delete_confirmed_booking_only_after_it_ended() -> None:
    upcoming = FakeBookingRepo(_booking(BookingStatus.CONFIRMED))
    with pytest.raises(DeleteNotAllowedError):
        await uc.delete_booking(upcoming, booking_id=100, actor_id=5)
    assert upcoming.deleted is None

    past = FakeBookingRepo(_booking(BookingStatus.CONFIRMED, ends_in=timedelta(hours=-1)))
    await uc.delete_booking(past, booking_id=100, actor_id=5)
    assert past.deleted is not None


@pytest.mark.asyncio
async def test_list_user_bookings() -> None:
    booking = _booking(BookingStatus.CONFIRMED)
    assert await uc.list_user_bookings(FakeBookingRepo(booking), actor_id=5) == [booking]


def test_clamp_vehicle_count() -> None:
    assert uc.clamp_vehicle_count(5, 2) == 2
    assert uc.clamp_vehicle_count(1, 3) == 1
    assert uc.clamp_vehicle_count(2, 0) == 1

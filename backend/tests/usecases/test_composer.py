from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import pytest
from parkspace.domain.errors import DateNotBookableError, InsufficientCapacityError, OutsideAvailableHoursError
from parkspace.domain.schedule import TimeOfDay
from parkspace.models import Booking, BookingStatus, ParkingSpace
from parkspace.usecases.composer import BookingComposer

SUNDAY = date(2026, 10, 18)
MONDAY = date(2026, 10, 19)
THURSDAY = date(2026, 10, 22)


def _space() -> ParkingSpace:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return ParkingSpace(
        id=7,
        host_id=2,
        title="Driveway",
        address="12 Galle Road, Colombo",
        latitude=6.9,
        longitude=79.85,
        price_per_hour=Decimal("100"),
        price_per_day=None,
        max_vehicles=3,
        is_active=True,
        repeating_weekly=True,
        day_availability_schedule={
            "1": {"startTime": "08:00", "endTime": "20:00"},
            "4": {"startTime": "08:00", "endTime": "20:00"},
        },
        created_at=now,
        updated_at=now,
    )


class FakeSpaceRepo:
    async def get(self, space_id: int) -> Optional[ParkingSpace]:
        return _space()


class ScriptedOracle:
    def __init__(self, *answers: int) -> None:
        self.answers = list(answers)
        self.calls = 0

    async def query(self, space_id: int, starts_at: datetime, ends_at: datetime) -> int:
        answer = self.answers[min(self.calls, len(self.answers) - 1)]
        self.calls += 1
        return answer


class RecordingBookingRepo:
    def __init__(self) -> None:
        self.created: List[dict] = []

    async def create(self, **fields: object) -> Booking:
        self.created.append(fields)
        return Booking(id=len(self.created), **fields)


@pytest.mark.asyncio
async def test_load_starts_on_first_bookable_day() -> None:
    composer = await BookingComposer.load(FakeSpaceRepo(), ScriptedOracle(3), space_id=7, today=SUNDAY)
    assert composer.request.date == MONDAY
    assert composer.request.start_time == TimeOfDay(9, 0)
    assert composer.request.end_time == TimeOfDay(18, 0)
    assert composer.snapshot is not None and composer.snapshot.available_slots == 3


@pytest.mark.asyncio
async def test_time_change_refetches_capacity_and_clamps_vehicles() -> None:
    oracle = ScriptedOracle(3, 1)
    composer = await BookingComposer.load(FakeSpaceRepo(), oracle, space_id=7, today=SUNDAY)
    assert composer.set_vehicle_count(3) == 3

    snapshot = await composer.change(end_time=TimeOfDay(19, 0))
    assert oracle.calls == 2
    assert snapshot is not None and snapshot.available_slots == 1
    assert composer.request.vehicle_count == 1


@pytest.mark.asyncio
async def test_unchanged_draft_reuses_current_snapshot() -> None:
    oracle = ScriptedOracle(3)
    composer = await BookingComposer.load(FakeSpaceRepo(), oracle, space_id=7, today=SUNDAY)
    await composer.change(start_time=TimeOfDay(9, 0))
    assert oracle.calls == 1


@pytest.mark.asyncio
async def test_vehicle_count_never_exceeds_capacity_or_drops_below_one() -> None:
    composer = await BookingComposer.load(FakeSpaceRepo(), ScriptedOracle(2), space_id=7, today=SUNDAY)
    assert composer.set_vehicle_count(10) == 2
    assert composer.set_vehicle_count(0) == 1


@pytest.mark.asyncio
async def test_step_forward_and_back_follow_schedule() -> None:
    composer = await BookingComposer.load(FakeSpaceRepo(), ScriptedOracle(3), space_id=7, today=SUNDAY)
    assert await composer.step_forward() == THURSDAY
    assert composer.request.date == THURSDAY
    assert await composer.step_back() == MONDAY
    assert await composer.step_back() is None
    assert composer.request.date == MONDAY


@pytest.mark.asyncio
async def test_rejection_reflects_current_draft() -> None:
    composer = await BookingComposer.load(FakeSpaceRepo(), ScriptedOracle(3), space_id=7, today=SUNDAY)
    assert composer.rejection() is None
    await composer.change(start_time=TimeOfDay(7, 0))
    assert isinstance(composer.rejection(), OutsideAvailableHoursError)


@pytest.mark.asyncio
async def test_submit_rechecks_capacity_before_writing() -> None:
    oracle = ScriptedOracle(3, 0)
    repo = RecordingBookingRepo()
    composer = await BookingComposer.load(FakeSpaceRepo(), oracle, space_id=7, today=SUNDAY)
    with pytest.raises(InsufficientCapacityError):
        await composer.submit(repo, actor_id=5)
    assert repo.created == []


@pytest.mark.asyncio
async def test_submit_creates_booking_for_actor() -> None:
    repo = RecordingBookingRepo()
    composer = await BookingComposer.load(FakeSpaceRepo(), ScriptedOracle(3), space_id=7, today=SUNDAY)
    composer.set_vehicle_count(2)
    booking = await composer.submit(repo, actor_id=5)
    assert booking.user_id == 5
    assert booking.vehicle_count == 2
    assert booking.status == BookingStatus.CONFIRMED
    assert booking.total_price == Decimal("900")


@pytest.mark.asyncio
async def test_change_to_past_day_is_refused() -> None:
    oracle = ScriptedOracle(3)
    composer = await BookingComposer.load(FakeSpaceRepo(), oracle, space_id=7, today=SUNDAY)
    with pytest.raises(DateNotBookableError):
        await composer.change(day=MONDAY - timedelta(days=7))
    assert composer.request.date == MONDAY
    assert oracle.calls == 1


@pytest.mark.asyncio
async def test_draft_left_open_past_its_day_cannot_be_submitted() -> None:
    repo = RecordingBookingRepo()
    composer = await BookingComposer.load(FakeSpaceRepo(), ScriptedOracle(3), space_id=7, today=SUNDAY)
    composer.today = THURSDAY
    assert isinstance(composer.rejection(), DateNotBookableError)
    with pytest.raises(DateNotBookableError):
        await composer.submit(repo, actor_id=5)
    assert repo.created == []

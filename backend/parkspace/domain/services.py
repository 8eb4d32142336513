import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from .errors import (
    DateNotBookableError,
    InsufficientCapacityError,
    InvalidTimeRangeError,
    InvalidVehicleCountError,
    NoPricingConfiguredError,
    OutsideAvailableHoursError,
)
from .schedule import AvailabilitySchedule, TimeOfDay, is_available, resolve_window

_HOUR = Decimal(3600)
_DAY_HOURS = Decimal(24)


@dataclass(frozen=True)
class CapacitySnapshot:
    available_slots: int
    starts_at: datetime
    ends_at: datetime
    fallback: bool = False


@dataclass(frozen=True)
class BookingRequest:
    space_id: int
    date: date
    start_time: TimeOfDay
    end_time: TimeOfDay
    vehicle_count: int


@dataclass(frozen=True)
class PricingRates:
    per_hour: Optional[Decimal] = None
    per_day: Optional[Decimal] = None


def _at(day: date, time_of_day: TimeOfDay) -> datetime:
    return datetime(day.year, day.month, day.day, time_of_day.hour, time_of_day.minute)


def combine_interval(day: date, start_time: TimeOfDay, end_time: TimeOfDay) -> tuple[datetime, datetime]:
    """Local start/end instants. An end at or before the start rolls to the next day, once."""
    start = _at(day, start_time)
    end = _at(day, end_time)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def validate_booking(
    request: BookingRequest,
    schedule: AvailabilitySchedule,
    snapshot: CapacitySnapshot,
) -> tuple[datetime, datetime]:
    """
    Pure validation of a booking request against the schedule and a capacity snapshot.
    Checks run in a fixed order and the first failure is raised.
    Returns the combined (start, end) instants if OK.
    """
    if not is_available(schedule, request.date):
        raise DateNotBookableError()

    start, end = combine_interval(request.date, request.start_time, request.end_time)
    if end <= start:
        raise InvalidTimeRangeError()

    window = resolve_window(schedule, request.date)
    if start < _at(request.date, window.start) or end > _at(request.date, window.end):
        raise OutsideAvailableHoursError()

    if request.vehicle_count < 1:
        raise InvalidVehicleCountError()
    if request.vehicle_count > snapshot.available_slots:
        raise InsufficientCapacityError(available=snapshot.available_slots)
    return start, end


def compute_price(rates: PricingRates, start: datetime, end: datetime) -> Decimal:
    """
    Daily rate rounds up to whole days; hourly rate is charged pro rata.
    The daily rate wins once the booking reaches a full day.
    """
    hours = Decimal((end - start).total_seconds()) / _HOUR
    days = hours / _DAY_HOURS

    if rates.per_day and days >= 1:
        return math.ceil(days) * rates.per_day
    if rates.per_hour:
        return hours * rates.per_hour
    if rates.per_day:
        return math.ceil(days) * rates.per_day
    raise NoPricingConfiguredError()


def rates_for_space(space: Any) -> PricingRates:
    return PricingRates(
        per_hour=Decimal(str(space.price_per_hour)) if space.price_per_hour is not None else None,
        per_day=Decimal(str(space.price_per_day)) if space.price_per_day is not None else None,
    )

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.errors import BookingRejectedError, InsufficientCapacityError
from .domain.schedule import TimeOfDay, TimeWindow
from .domain.services import BookingRequest
from .models import Booking, BookingStatus, ParkingSpace
from .usecases.availability import DayAvailability
from .usecases.bookings import Quote
from .utils.time import utc_naive_to_local

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ScheduleWindow(BaseModel):
    startTime: str = Field(pattern=HHMM_PATTERN)
    endTime: str = Field(pattern=HHMM_PATTERN)


class SpaceCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    address: str = Field(min_length=1, max_length=512)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    price_per_hour: Optional[Decimal] = Field(default=None, ge=0)
    price_per_day: Optional[Decimal] = Field(default=None, ge=0)
    max_vehicles: int = Field(default=1, ge=1)
    repeating_weekly: bool = True
    day_availability_schedule: dict[str, ScheduleWindow] = Field(default_factory=dict)
    availability_start: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    availability_end: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    available_days: Optional[list[int]] = None


class SpaceActiveUpdate(BaseModel):
    is_active: bool


class SpaceRead(BaseModel):
    space_id: int
    host_id: int
    title: str
    description: Optional[str]
    address: str
    latitude: float
    longitude: float
    price_per_hour: Optional[Decimal]
    price_per_day: Optional[Decimal]
    max_vehicles: int
    is_active: bool
    repeating_weekly: bool

    @classmethod
    def from_db(cls, *, space: ParkingSpace) -> "SpaceRead":
        return cls(
            space_id=space.id,
            host_id=space.host_id,
            title=space.title,
            description=space.description,
            address=space.address,
            latitude=space.latitude,
            longitude=space.longitude,
            price_per_hour=space.price_per_hour,
            price_per_day=space.price_per_day,
            max_vehicles=space.max_vehicles,
            is_active=space.is_active,
            repeating_weekly=space.repeating_weekly is not False,
        )


class WindowRead(BaseModel):
    start: str
    end: str

    @classmethod
    def from_window(cls, window: TimeWindow) -> "WindowRead":
        return cls(start=str(window.start), end=str(window.end))


class ScheduleRowRead(BaseModel):
    label: str
    window: Optional[WindowRead]


class AvailabilityRead(BaseModel):
    date: date
    available: bool
    window: Optional[WindowRead]
    next_available: Optional[date]
    previous_available: Optional[date]
    schedule: list[ScheduleRowRead]

    @classmethod
    def from_result(cls, result: DayAvailability) -> "AvailabilityRead":
        return cls(
            date=result.date,
            available=result.available,
            window=WindowRead.from_window(result.window) if result.window else None,
            next_available=result.next_available,
            previous_available=result.previous_available,
            schedule=[
                ScheduleRowRead(label=label, window=WindowRead.from_window(window) if window else None)
                for label, window in result.schedule
            ],
        )


class QuoteRequest(BaseModel):
    date: date
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    vehicle_count: int = 1

    def to_request(self, space_id: int) -> BookingRequest:
        return BookingRequest(
            space_id=space_id,
            date=self.date,
            start_time=TimeOfDay.parse(self.start_time),
            end_time=TimeOfDay.parse(self.end_time),
            vehicle_count=self.vehicle_count,
        )


class BookingCreate(QuoteRequest):
    space_id: int


class RejectionRead(BaseModel):
    code: str
    message: str
    available: Optional[int] = None

    @classmethod
    def from_error(cls, exc: BookingRejectedError) -> "RejectionRead":
        available = exc.available if isinstance(exc, InsufficientCapacityError) else None
        return cls(code=exc.code, message=exc.message, available=available)


class QuoteRead(BaseModel):
    space_id: int
    starts_at: datetime
    ends_at: datetime
    available_slots: int
    capacity_fallback: bool
    total_price: Optional[Decimal]
    suggested_vehicle_count: int
    rejection: Optional[RejectionRead]

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat(timespec="minutes")

    @classmethod
    def from_quote(cls, *, space_id: int, quote: Quote) -> "QuoteRead":
        return cls(
            space_id=space_id,
            starts_at=quote.starts_at,
            ends_at=quote.ends_at,
            available_slots=quote.snapshot.available_slots,
            capacity_fallback=quote.snapshot.fallback,
            total_price=quote.total_price,
            suggested_vehicle_count=quote.suggested_vehicle_count,
            rejection=RejectionRead.from_error(quote.rejection) if quote.rejection else None,
        )


class BookingRead(BaseModel):
    booking_id: int
    space_id: Optional[int]
    space_title: Optional[str] = None
    space_address: Optional[str] = None
    user_id: int
    start_time: datetime
    end_time: datetime
    vehicle_count: int
    total_price: Decimal
    status: BookingStatus

    @field_serializer("start_time", "end_time")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_db(cls, *, booking: Booking, space: Optional[ParkingSpace] = None) -> "BookingRead":
        """`space` is passed in, never lazy-loaded; it is None once the listing is deleted."""
        return cls(
            booking_id=booking.id,
            space_id=booking.space_id,
            space_title=space.title if space is not None else None,
            space_address=space.address if space is not None else None,
            user_id=booking.user_id,
            start_time=utc_naive_to_local(booking.start_time),
            end_time=utc_naive_to_local(booking.end_time),
            vehicle_count=booking.vehicle_count,
            total_price=booking.total_price,
            status=booking.status,
        )

class DomainError(Exception):
    """Base error raised by domain and usecase code."""


class BookingRejectedError(DomainError):
    """A booking request failed validation. Each subclass has a unique code and message."""

    code = "booking_rejected"
    message = "This booking cannot be made."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class DateNotBookableError(BookingRejectedError):
    code = "date_not_bookable"
    message = "This space is not available on the selected date. Please pick another day."


class InvalidTimeRangeError(BookingRejectedError):
    code = "invalid_time_range"
    message = "End time must be after start time."


class OutsideAvailableHoursError(BookingRejectedError):
    code = "outside_available_hours"
    message = "The selected time is outside this space's available hours for that day."


class InvalidVehicleCountError(BookingRejectedError):
    code = "invalid_vehicle_count"
    message = "Number of vehicles must be at least 1."


class InsufficientCapacityError(BookingRejectedError):
    code = "insufficient_capacity"

    def __init__(self, available: int) -> None:
        self.available = available
        super().__init__(
            f"Only {available} vehicle slot(s) available for this time period. "
            "Please select a different time or reduce the number of vehicles."
        )


class NoPricingConfiguredError(DomainError):
    code = "no_pricing_configured"
    message = "No pricing information available for this space."

    def __init__(self) -> None:
        super().__init__(self.message)


class CapacityOracleUnavailableError(DomainError):
    """Remote capacity lookup failed; callers fall back to the space's max_vehicles."""


class PersistenceFailureError(DomainError):
    """Write rejected by the backing store. The message is passed through untouched."""


class SpaceNotFoundError(DomainError):
    pass


class BookingNotFoundError(DomainError):
    pass


class CancelNotAllowedError(DomainError):
    pass


class DeleteNotAllowedError(DomainError):
    pass


class ForbiddenError(DomainError):
    pass


class InvalidListingError(DomainError):
    pass

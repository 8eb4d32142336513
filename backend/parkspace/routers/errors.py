from fastapi import HTTPException, status

from ..domain.errors import (
    BookingRejectedError,
    InsufficientCapacityError,
    NoPricingConfiguredError,
    PersistenceFailureError,
)
from ..schemas import RejectionRead


def rejection_to_http(exc: BookingRejectedError) -> HTTPException:
    code = status.HTTP_409_CONFLICT if isinstance(exc, InsufficientCapacityError) else status.HTTP_422_UNPROCESSABLE_ENTITY
    return HTTPException(status_code=code, detail=RejectionRead.from_error(exc).model_dump(exclude_none=True))


def pricing_to_http(exc: NoPricingConfiguredError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": exc.code, "message": exc.message},
    )


def persistence_to_http(exc: PersistenceFailureError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


def audit_failure() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

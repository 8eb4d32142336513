from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import (
    BookingNotFoundError,
    BookingRejectedError,
    CancelNotAllowedError,
    DeleteNotAllowedError,
    NoPricingConfiguredError,
    PersistenceFailureError,
    SpaceNotFoundError,
)
from ..infrastructure.repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemySpaceRepository,
    SqlFunctionCapacityOracle,
)
from ..schemas import BookingCreate, BookingRead
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import emit_audit_log
from .errors import audit_failure, persistence_to_http, pricing_to_http, rejection_to_http

router = APIRouter(prefix="", tags=["bookings"], dependencies=[Depends(get_current_user_id)])


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    space_repo = SqlAlchemySpaceRepository(session)
    booking_repo = SqlAlchemyBookingRepository(session)
    oracle = SqlFunctionCapacityOracle(session, get_settings().capacity_function)
    async with session.begin():
        try:
            booking, space = await booking_usecase.create_booking(
                space_repo,
                booking_repo,
                oracle,
                request=payload.to_request(payload.space_id),
                actor_id=user_id,
            )
        except SpaceNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="parking space not found")
        except BookingRejectedError as exc:
            raise rejection_to_http(exc)
        except NoPricingConfiguredError as exc:
            raise pricing_to_http(exc)
        except PersistenceFailureError as exc:
            raise persistence_to_http(exc)
        try:
            emit_audit_log(
                action="booking.created",
                actor_id=user_id,
                space_id=space.id,
                booking_id=booking.id,
                status_to=booking.status,
                vehicle_count=booking.vehicle_count,
                total_price=booking.total_price,
            )
        except RuntimeError:
            raise audit_failure()

    return BookingRead.from_db(booking=booking, space=space)


@router.get("/me/bookings", response_model=List[BookingRead])
async def list_my_bookings(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[BookingRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    bookings = await booking_usecase.list_user_bookings(booking_repo, actor_id=user_id)
    return [BookingRead.from_db(booking=booking, space=booking.space) for booking in bookings]


@router.post("/me/bookings/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> BookingRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            booking, previous = await booking_usecase.cancel_booking(
                booking_repo,
                booking_id=booking_id,
                actor_id=user_id,
            )
        except BookingNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")
        except CancelNotAllowedError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        except PersistenceFailureError as exc:
            raise persistence_to_http(exc)
        try:
            emit_audit_log(
                action="booking.cancelled",
                actor_id=user_id,
                space_id=booking.space_id,
                booking_id=booking.id,
                status_from=previous,
                status_to=booking.status,
            )
        except RuntimeError:
            raise audit_failure()

    return BookingRead.from_db(booking=booking, space=booking.space)


@router.delete("/me/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> None:
    booking_repo = SqlAlchemyBookingRepository(session)
    async with session.begin():
        try:
            booking = await booking_usecase.delete_booking(booking_repo, booking_id=booking_id, actor_id=user_id)
        except BookingNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking not found")
        except DeleteNotAllowedError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
        except PersistenceFailureError as exc:
            raise persistence_to_http(exc)
        try:
            emit_audit_log(
                action="booking.deleted",
                actor_id=user_id,
                space_id=booking.space_id,
                booking_id=booking.id,
                status_from=booking.status,
            )
        except RuntimeError:
            raise audit_failure()

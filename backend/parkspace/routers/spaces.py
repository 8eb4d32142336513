from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session
from ..domain.errors import (
    ForbiddenError,
    InvalidListingError,
    NoPricingConfiguredError,
    PersistenceFailureError,
    SpaceNotFoundError,
)
from ..infrastructure.repositories import SqlAlchemySpaceRepository, SqlFunctionCapacityOracle
from ..schemas import AvailabilityRead, QuoteRead, QuoteRequest, SpaceActiveUpdate, SpaceCreate, SpaceRead
from ..usecases import availability as availability_usecase
from ..usecases import bookings as booking_usecase
from ..usecases import spaces as space_usecase
from ..utils.audit_log import emit_audit_log
from ..utils.time import local_today
from .errors import audit_failure, persistence_to_http, pricing_to_http

router = APIRouter(prefix="", tags=["spaces"])


@router.get("/spaces", response_model=List[SpaceRead])
async def search_spaces(
    q: Optional[str] = Query(default=None, description="Address substring"),
    session: AsyncSession = Depends(get_session),
) -> list[SpaceRead]:
    space_repo = SqlAlchemySpaceRepository(session)
    spaces = await space_usecase.search_spaces(space_repo, query=q)
    return [SpaceRead.from_db(space=space) for space in spaces]


@router.get("/spaces/{space_id}/availability", response_model=AvailabilityRead)
async def get_availability(
    space_id: int = Path(..., ge=1),
    day: Optional[date] = Query(default=None, alias="date"),
    session: AsyncSession = Depends(get_session),
) -> AvailabilityRead:
    space_repo = SqlAlchemySpaceRepository(session)
    today = local_today()
    try:
        result = await availability_usecase.get_space_availability(
            space_repo,
            space_id=space_id,
            day=day or today,
            today=today,
        )
    except SpaceNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="parking space not found")
    return AvailabilityRead.from_result(result)


@router.post("/spaces/{space_id}/quote", response_model=QuoteRead)
async def quote_booking(
    payload: QuoteRequest,
    space_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> QuoteRead:
    space_repo = SqlAlchemySpaceRepository(session)
    oracle = SqlFunctionCapacityOracle(session, get_settings().capacity_function)
    try:
        quote = await booking_usecase.quote_booking(space_repo, oracle, request=payload.to_request(space_id))
    except SpaceNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="parking space not found")
    except NoPricingConfiguredError as exc:
        raise pricing_to_http(exc)
    return QuoteRead.from_quote(space_id=space_id, quote=quote)


@router.post("/spaces", response_model=SpaceRead, status_code=status.HTTP_201_CREATED)
async def create_space(
    payload: SpaceCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> SpaceRead:
    space_repo = SqlAlchemySpaceRepository(session)
    async with session.begin():
        try:
            space = await space_usecase.create_space(
                space_repo,
                host_id=user_id,
                title=payload.title,
                description=payload.description,
                address=payload.address,
                latitude=payload.latitude,
                longitude=payload.longitude,
                price_per_hour=payload.price_per_hour,
                price_per_day=payload.price_per_day,
                max_vehicles=payload.max_vehicles,
                repeating_weekly=payload.repeating_weekly,
                day_availability_schedule={
                    key: window.model_dump() for key, window in payload.day_availability_schedule.items()
                },
                availability_start=payload.availability_start,
                availability_end=payload.availability_end,
                available_days=payload.available_days,
            )
        except InvalidListingError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        except PersistenceFailureError as exc:
            raise persistence_to_http(exc)
        try:
            emit_audit_log(action="space.created", actor_id=user_id, space_id=space.id)
        except RuntimeError:
            raise audit_failure()

    return SpaceRead.from_db(space=space)


@router.get("/me/spaces", response_model=List[SpaceRead])
async def list_my_spaces(
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[SpaceRead]:
    space_repo = SqlAlchemySpaceRepository(session)
    spaces = await space_usecase.list_host_spaces(space_repo, host_id=user_id)
    return [SpaceRead.from_db(space=space) for space in spaces]


@router.post("/me/spaces/{space_id}/active", response_model=SpaceRead)
async def set_space_active(
    payload: SpaceActiveUpdate,
    space_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> SpaceRead:
    space_repo = SqlAlchemySpaceRepository(session)
    async with session.begin():
        try:
            space = await space_usecase.set_space_active(
                space_repo,
                space_id=space_id,
                host_id=user_id,
                is_active=payload.is_active,
            )
        except SpaceNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="parking space not found")
        except ForbiddenError:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not your listing")
        except PersistenceFailureError as exc:
            raise persistence_to_http(exc)
        try:
            emit_audit_log(
                action="space.activated" if space.is_active else "space.deactivated",
                actor_id=user_id,
                space_id=space.id,
            )
        except RuntimeError:
            raise audit_failure()

    return SpaceRead.from_db(space=space)


@router.delete("/me/spaces/{space_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_space(
    space_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> None:
    space_repo = SqlAlchemySpaceRepository(session)
    async with session.begin():
        try:
            _, closed = await space_usecase.delete_space(space_repo, space_id=space_id, host_id=user_id)
        except SpaceNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="parking space not found")
        except ForbiddenError:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not your listing")
        except PersistenceFailureError as exc:
            raise persistence_to_http(exc)
        try:
            emit_audit_log(
                action="space.deleted",
                actor_id=user_id,
                space_id=space_id,
                extra={"bookings_closed": closed},
            )
        except RuntimeError:
            raise audit_failure()

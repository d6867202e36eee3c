from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_config_repo, get_current_user_id, get_session
from ..domain.errors import InvalidInputError, StoreUnavailableError
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..schemas import CalendarDayRead, DayAvailabilityRead, SlotAvailabilityRead
from ..usecases import slots as slot_usecase

router = APIRouter(prefix="/slots", tags=["slots"], dependencies=[Depends(get_current_user_id)])


@router.get("/availability", response_model=DayAvailabilityRead)
async def list_availability(
    day: date = Query(..., alias="date", description="business-local date (YYYY-MM-DD)"),
    session: AsyncSession = Depends(get_session),
) -> DayAvailabilityRead:
    try:
        openness, items = await slot_usecase.list_slot_availability(
            build_config_repo(session),
            SqlAlchemyReservationRepository(session),
            day=day,
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc
    return DayAvailabilityRead(
        day=CalendarDayRead.from_domain(openness),
        slots=[SlotAvailabilityRead.from_domain(item) for item in items],
    )


@router.get("/calendar", response_model=List[CalendarDayRead])
async def list_calendar(
    start: date = Query(...),
    end: date = Query(...),
    session: AsyncSession = Depends(get_session),
) -> list[CalendarDayRead]:
    try:
        days = await slot_usecase.list_calendar(build_config_repo(session), start=start, end=end)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="store unavailable") from exc
    return [CalendarDayRead.from_domain(day) for day in days]

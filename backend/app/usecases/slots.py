from dataclasses import dataclass
from datetime import date

from ..domain.calendar import DayOpenness, list_days, resolve_day
from ..domain.errors import InvalidInputError
from ..domain.repositories import ReservationRepository, SchedulingConfigRepository
from ..domain.slots import SlotState, compute_slot_state, is_offerable

MAX_CALENDAR_DAYS = 62


@dataclass(frozen=True)
class SlotAvailability:
    state: SlotState
    offerable: bool


async def list_slot_availability(
    config_repo: SchedulingConfigRepository,
    res_repo: ReservationRepository,
    *,
    day: date,
) -> tuple[DayOpenness, list[SlotAvailability]]:
    config = await config_repo.load()
    openness = resolve_day(config.calendar, day)
    bookings = await res_repo.list_for_date(day)
    states = compute_slot_state(
        day,
        config.catalog,
        bookings,
        buffer_minutes=config.buffer_minutes,
        pool_size=config.slot_pool_size(),
        blocking_statuses=config.blocking_statuses,
    )
    items = [SlotAvailability(state=state, offerable=is_offerable(openness, state)) for state in states.values()]
    return openness, items


async def list_calendar(
    config_repo: SchedulingConfigRepository,
    *,
    start: date,
    end: date,
) -> list[DayOpenness]:
    if (end - start).days >= MAX_CALENDAR_DAYS:
        raise InvalidInputError(f"calendar range may span at most {MAX_CALENDAR_DAYS} days")
    config = await config_repo.load()
    return list_days(config.calendar, start, end)

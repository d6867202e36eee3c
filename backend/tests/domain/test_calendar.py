from datetime import date

import pytest
from app.domain.calendar import (
    BusinessCalendar,
    ClosedReason,
    DaySchedule,
    Holiday,
    is_within_business_hours,
    list_days,
    resolve_day,
    weekday_index,
)
from app.domain.errors import InvalidInputError

MONDAY = date(2024, 6, 3)
SUNDAY = date(2024, 6, 2)


def _calendar(*holidays: Holiday) -> BusinessCalendar:
    weekly = {0: DaySchedule(is_open=False), 6: DaySchedule(is_open=False)}
    for day in range(1, 6):
        weekly[day] = DaySchedule(is_open=True, open_time=9 * 60, close_time=17 * 60)
    return BusinessCalendar.build(weekly, holidays)


def test_weekday_index_is_sunday_based() -> None:
    assert weekday_index(SUNDAY) == 0
    assert weekday_index(MONDAY) == 1
    assert weekday_index(date(2024, 6, 8)) == 6


def test_open_weekday_returns_hours() -> None:
    result = resolve_day(_calendar(), MONDAY)
    assert result.open is True
    assert (result.open_time, result.close_time) == (540, 1020)
    assert result.closed_reason is None


def test_weekly_closed_day() -> None:
    result = resolve_day(_calendar(), SUNDAY)
    assert result.open is False
    assert result.closed_reason == ClosedReason.WEEKLY_CLOSED


def test_missing_weekday_entry_is_closed() -> None:
    calendar = BusinessCalendar.build({1: DaySchedule(is_open=True)})
    assert resolve_day(calendar, date(2024, 6, 4)).closed_reason == ClosedReason.WEEKLY_CLOSED


def test_holiday_overrides_open_weekday_and_carries_note() -> None:
    calendar = _calendar(Holiday(day=MONDAY, note="Songkran"))
    result = resolve_day(calendar, MONDAY)
    assert result.open is False
    assert result.closed_reason == ClosedReason.HOLIDAY
    assert result.note == "Songkran"


def test_open_day_without_times_defaults_to_nine_to_five() -> None:
    calendar = BusinessCalendar.build({1: DaySchedule(is_open=True)})
    result = resolve_day(calendar, MONDAY)
    assert (result.open_time, result.close_time) == (540, 1020)


def test_business_hours_include_both_bounds() -> None:
    calendar = _calendar()
    assert is_within_business_hours(calendar, MONDAY, 9 * 60)
    assert is_within_business_hours(calendar, MONDAY, 17 * 60)
    assert not is_within_business_hours(calendar, MONDAY, 17 * 60 + 1)
    assert not is_within_business_hours(calendar, MONDAY, 8 * 60 + 59)
    assert not is_within_business_hours(calendar, SUNDAY, 10 * 60)


def test_missing_date_raises() -> None:
    with pytest.raises(InvalidInputError):
        resolve_day(_calendar(), None)  # type: ignore[arg-type]


def test_list_days_covers_inclusive_range() -> None:
    days = list_days(_calendar(Holiday(day=MONDAY)), SUNDAY, date(2024, 6, 4))
    assert [d.day for d in days] == [SUNDAY, MONDAY, date(2024, 6, 4)]
    assert [d.open for d in days] == [False, False, True]


def test_list_days_rejects_inverted_range() -> None:
    with pytest.raises(InvalidInputError):
        list_days(_calendar(), MONDAY, SUNDAY)

from datetime import datetime, timedelta, timezone

import pytest
from app.domain.entities import IntervalReservation
from app.domain.errors import InvalidInputError
from app.domain.intervals import find_overlaps, windows_overlap
from app.models import ReservationStatus


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 6, 1, hour, minute, tzinfo=timezone.utc)


def _res(
    res_id: int,
    start: datetime,
    end: datetime,
    *,
    resource_id: int = 1,
    status: ReservationStatus = ReservationStatus.CONFIRMED,
) -> IntervalReservation:
    return IntervalReservation(id=res_id, resource_id=resource_id, start=start, end=end, status=status)


def test_partial_overlap_is_reported_with_id() -> None:
    existing = [_res(7, _at(8), _at(12))]
    overlaps = find_overlaps(1, _at(11), _at(13), existing)
    assert [r.id for r in overlaps] == [7]


def test_touching_endpoints_count_as_overlap() -> None:
    existing = [_res(1, _at(11), _at(12))]
    assert find_overlaps(1, _at(10), _at(11), existing)
    assert windows_overlap(_at(10), _at(11), _at(11), _at(12))


def test_disjoint_windows_do_not_overlap() -> None:
    existing = [_res(1, _at(12, 1), _at(13))]
    assert find_overlaps(1, _at(10), _at(12), existing) == []


def test_other_resources_and_cancelled_are_ignored() -> None:
    existing = [
        _res(1, _at(9), _at(10), resource_id=2),
        _res(2, _at(9), _at(10), status=ReservationStatus.CANCELLED),
    ]
    assert find_overlaps(1, _at(9), _at(10), existing) == []


def test_pending_blocks_by_default() -> None:
    existing = [_res(3, _at(9), _at(10), status=ReservationStatus.PENDING)]
    assert [r.id for r in find_overlaps(1, _at(9, 30), _at(11), existing)] == [3]


def test_caller_can_narrow_blocking_statuses() -> None:
    existing = [_res(3, _at(9), _at(10), status=ReservationStatus.PENDING)]
    overlaps = find_overlaps(
        1,
        _at(9, 30),
        _at(11),
        existing,
        blocking_statuses=frozenset({ReservationStatus.CONFIRMED}),
    )
    assert overlaps == []


def test_returns_every_overlap() -> None:
    existing = [_res(1, _at(8), _at(9)), _res(2, _at(10), _at(11)), _res(3, _at(14), _at(15))]
    assert [r.id for r in find_overlaps(1, _at(8, 30), _at(10, 30), existing)] == [1, 2]


@pytest.mark.parametrize(
    "start,end",
    [
        (_at(10), _at(10)),
        (_at(11), _at(10)),
        (datetime(2024, 6, 1, 10), datetime(2024, 6, 1, 11)),
    ],
)
def test_malformed_candidate_raises(start: datetime, end: datetime) -> None:
    with pytest.raises(InvalidInputError):
        find_overlaps(1, start, end, [])


def test_overlap_is_timezone_aware() -> None:
    bangkok = timezone(timedelta(hours=7))
    existing = [_res(1, _at(8), _at(9))]
    start = datetime(2024, 6, 1, 15, 30, tzinfo=bangkok)  # 08:30 UTC
    assert find_overlaps(1, start, start + timedelta(minutes=10), existing)

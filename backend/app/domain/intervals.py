from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..models import ReservationStatus
from .entities import ACTIVE_STATUSES, IntervalReservation
from .errors import InvalidInputError


def windows_overlap(s1: datetime, e1: datetime, s2: datetime, e2: datetime) -> bool:
    """Closed-endpoint overlap: a window ending exactly when another starts still collides."""
    return not (e1 < s2 or s1 > e2)


def validate_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is None or end is None:
        raise InvalidInputError("start and end are required")
    if start.tzinfo is None or end.tzinfo is None:
        raise InvalidInputError("start/end must be timezone-aware")
    if end <= start:
        raise InvalidInputError("end must be later than start")


def find_overlaps(
    resource_id: int,
    start: datetime,
    end: datetime,
    existing: Iterable[IntervalReservation],
    *,
    blocking_statuses: frozenset[ReservationStatus] = ACTIVE_STATUSES,
) -> list[IntervalReservation]:
    """
    Return every reservation on `resource_id` whose window collides with [start, end].
    Only reservations in `blocking_statuses` are considered.
    """
    validate_window(start, end)
    return [
        reservation
        for reservation in existing
        if reservation.resource_id == resource_id
        and reservation.status in blocking_statuses
        and windows_overlap(start, end, reservation.start, reservation.end)
    ]

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ..domain import services
from ..domain.entities import ReservationRecord, local_instant
from ..domain.errors import InvalidInputError
from ..domain.intervals import validate_window
from ..domain.repositories import ReservationRepository, ResourceRepository, SchedulingConfigRepository
from ..domain.services import AdmissionRequest, AdmissionVerdict, IntervalRequest, SchedulingConfig, SlotRequest
from ..models import Reservation, ReservationStatus, ReservationStyle, ResourceKind
from ..utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitOutcome:
    verdict: AdmissionVerdict
    reservation: Optional[Reservation] = None

    @property
    def success(self) -> bool:
        return self.reservation is not None


async def check_admission(
    config_repo: SchedulingConfigRepository,
    res_repo: ReservationRepository,
    resource_repo: ResourceRepository,
    *,
    request: AdmissionRequest,
    now: Optional[datetime] = None,
) -> AdmissionVerdict:
    """Advisory check: reads a fresh snapshot and never writes. Safe to call on every selection change."""
    config = await config_repo.load()
    await _ensure_resources(resource_repo, request, for_update=False)
    existing = await _snapshot(res_repo, request)
    return services.check_admission(config, request, existing, now=now or utc_now())


async def commit_reservation(
    config_repo: SchedulingConfigRepository,
    res_repo: ReservationRepository,
    resource_repo: ResourceRepository,
    *,
    request: AdmissionRequest,
    user_id: int,
    advisory: Optional[AdmissionVerdict] = None,
    now: Optional[datetime] = None,
) -> CommitOutcome:
    """
    Re-check admission and write the reservation.
    Must run inside the caller's transaction so the lock, the re-check and the insert commit together.
    """
    if advisory is not None and not advisory.admitted:
        return CommitOutcome(verdict=advisory)

    # Locks precede every plain read; the first plain read fixes the snapshot the re-check sees.
    if isinstance(request, SlotRequest):
        await config_repo.lock_pool()
    await _ensure_resources(resource_repo, request, for_update=True)
    config = await config_repo.load()

    existing = await _snapshot(res_repo, request)
    verdict = services.check_admission(config, request, existing, now=now or utc_now())
    if not verdict.admitted:
        if advisory is not None:
            logger.info(
                "commit-time re-check rejected an advisory-admitted request: %s",
                verdict.reason_code,
            )
        return CommitOutcome(verdict=verdict)

    if services.PREFERRED_UNIT_UNAVAILABLE in verdict.warnings:
        logger.warning(
            "preferred unit %s unavailable, reassigned to pool",
            getattr(request, "preferred_resource_id", None),
        )

    reservation = await _write(res_repo, config, request, verdict, user_id=user_id)
    return CommitOutcome(verdict=verdict, reservation=reservation)


async def _ensure_resources(
    resource_repo: ResourceRepository,
    request: AdmissionRequest,
    *,
    for_update: bool,
) -> None:
    if isinstance(request, IntervalRequest):
        resource_id: Optional[int] = request.resource_id
        expected_kind = ResourceKind.VEHICLE
    elif isinstance(request, SlotRequest):
        resource_id = request.preferred_resource_id
        expected_kind = ResourceKind.TECHNICIAN
    else:
        raise InvalidInputError(f"unsupported request type: {type(request).__name__}")
    if resource_id is None:
        return

    lookup = resource_repo.get_for_update if for_update else resource_repo.get
    resource = await lookup(resource_id)
    if resource is None or not resource.is_active:
        raise InvalidInputError(f"unknown resource id: {resource_id}")
    if resource.kind != expected_kind:
        raise InvalidInputError(f"resource {resource_id} is not a {expected_kind.value}")


async def _snapshot(
    res_repo: ReservationRepository,
    request: AdmissionRequest,
) -> Sequence[ReservationRecord]:
    if isinstance(request, IntervalRequest):
        validate_window(request.start, request.end)
        return await res_repo.list_for_resource(request.resource_id, request.start, request.end)
    if request.day is None:
        raise InvalidInputError("date is required")
    return await res_repo.list_for_date(request.day)


async def _write(
    res_repo: ReservationRepository,
    config: SchedulingConfig,
    request: AdmissionRequest,
    verdict: AdmissionVerdict,
    *,
    user_id: int,
) -> Reservation:
    if isinstance(request, IntervalRequest):
        # Vehicle trips wait for an approver.
        return await res_repo.create(
            style=ReservationStyle.INTERVAL,
            resource_id=request.resource_id,
            user_id=user_id,
            starts_at=request.start,
            ends_at=request.end,
            status=ReservationStatus.PENDING,
        )

    starts_at = local_instant(request.day, request.time_of_day, config.tz)
    return await res_repo.create(
        style=ReservationStyle.SLOT,
        resource_id=verdict.assigned_resource_id,
        user_id=user_id,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=request.duration_minutes),
        status=ReservationStatus.CONFIRMED,
        slot_date=request.day,
        slot_minute=request.time_of_day,
        duration_minutes=request.duration_minutes,
    )

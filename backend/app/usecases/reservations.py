from datetime import datetime, timezone

from ..domain.errors import ReservationNotFoundError, StatusTransitionError, VersionConflictError
from ..domain.repositories import ReservationRepository
from ..models import Reservation, ReservationStatus


async def confirm_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    version: int,
) -> tuple[Reservation, ReservationStatus]:
    """Approval: pending -> confirmed. Returns the reservation and its previous status."""
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return await _transition(
        res_repo,
        reservation,
        version=version,
        allowed_from={ReservationStatus.PENDING},
        to=ReservationStatus.CONFIRMED,
    )


async def reject_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    version: int,
) -> tuple[Reservation, ReservationStatus]:
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return await _transition(
        res_repo,
        reservation,
        version=version,
        allowed_from={ReservationStatus.PENDING},
        to=ReservationStatus.CANCELLED,
    )


async def cancel_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
    version: int,
) -> tuple[Reservation, ReservationStatus]:
    reservation = await res_repo.get_for_user_for_update(reservation_id, user_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    # Idempotent: already cancelled returns as-is
    if reservation.status == ReservationStatus.CANCELLED:
        return reservation, reservation.status
    return await _transition(
        res_repo,
        reservation,
        version=version,
        allowed_from={ReservationStatus.PENDING, ReservationStatus.CONFIRMED},
        to=ReservationStatus.CANCELLED,
    )


async def list_user_reservations(
    res_repo: ReservationRepository,
    *,
    user_id: int,
    status: ReservationStatus | None = None,
) -> list[Reservation]:
    return await res_repo.list_by_user(user_id, status)


async def get_user_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    user_id: int,
) -> Reservation | None:
    return await res_repo.get_for_user(reservation_id, user_id)


async def _transition(
    res_repo: ReservationRepository,
    reservation: Reservation,
    *,
    version: int,
    allowed_from: set[ReservationStatus],
    to: ReservationStatus,
) -> tuple[Reservation, ReservationStatus]:
    if reservation.version != version:
        raise VersionConflictError("version mismatch")
    previous = reservation.status
    if previous not in allowed_from:
        raise StatusTransitionError(f"cannot move reservation from {previous} to {to}")

    reservation.status = to
    reservation.version += 1
    reservation.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
    updated = await res_repo.save(reservation)
    return updated, previous

import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import build_config_repo, get_approver_id, get_current_user_id, get_session
from ..domain.errors import (
    InvalidInputError,
    ReservationNotFoundError,
    StatusTransitionError,
    StoreUnavailableError,
    VersionConflictError,
)
from ..infrastructure.repositories import SqlAlchemyReservationRepository, SqlAlchemyResourceRepository
from ..models import ReservationStatus
from ..schemas import AdmissionVerdictRead, CommitRead, ReservationCreate, ReservationRead, ReservationTransition
from ..usecases import admission as admission_usecase
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="", tags=["reservations"])

_IF_MATCH = re.compile(r'^(?:W/)?"?(\d+)"?$')


def _extract_version(if_match: Optional[str], payload: Optional[ReservationTransition]) -> int:
    """Version from If-Match (preferred) or the request body."""
    if if_match is not None:
        match = _IF_MATCH.match(if_match.strip())
        if match is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid If-Match header")
        version = int(match.group(1))
    elif payload is not None and payload.version is not None:
        version = payload.version
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version required")
    if version < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version must be >= 1")
    return version


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, ReservationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    if isinstance(exc, (VersionConflictError, StatusTransitionError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, StoreUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="reservation store unavailable")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="unexpected error")


@router.post("/reservations/check", response_model=AdmissionVerdictRead)
async def check_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> AdmissionVerdictRead:
    try:
        verdict = await admission_usecase.check_admission(
            build_config_repo(session),
            SqlAlchemyReservationRepository(session),
            SqlAlchemyResourceRepository(session),
            request=payload.candidate.to_request(),
        )
    except (InvalidInputError, StoreUnavailableError) as exc:
        raise _http_error(exc) from exc
    return AdmissionVerdictRead.from_domain(verdict)


@router.post("/reservations", response_model=CommitRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> CommitRead:
    request = payload.candidate.to_request()
    try:
        async with session.begin():
            outcome = await admission_usecase.commit_reservation(
                build_config_repo(session),
                SqlAlchemyReservationRepository(session),
                SqlAlchemyResourceRepository(session),
                request=request,
                user_id=user_id,
            )
    except (InvalidInputError, StoreUnavailableError) as exc:
        raise _http_error(exc) from exc
    except IntegrityError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="reservation conflicts with stored data"
        ) from exc

    verdict = AdmissionVerdictRead.from_domain(outcome.verdict)
    if outcome.reservation is None:
        try:
            emit_audit_log(
                action="reservation.commit_rejected",
                initiator="user",
                reservation_id=None,
                style=payload.candidate.style,
                resource_id=getattr(request, "resource_id", None) or getattr(request, "preferred_resource_id", None),
                user_id=user_id,
                status_from=None,
                status_to=None,
                version=None,
                reason_code=outcome.verdict.reason_code,
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=verdict.model_dump(mode="json"))

    reservation = outcome.reservation
    try:
        emit_audit_log(
            action="reservation.committed",
            initiator="user",
            reservation_id=reservation.id,
            style=reservation.style,
            resource_id=reservation.resource_id,
            user_id=user_id,
            status_from=None,
            status_to=reservation.status,
            version=reservation.version,
            extra={"warnings": list(outcome.verdict.warnings)} if outcome.verdict.warnings else None,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return CommitRead(verdict=verdict, reservation=ReservationRead.from_db(reservation=reservation))


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_user_reservations(res_repo, user_id=user_id, status=status_filter)
    except StoreUnavailableError as exc:
        raise _http_error(exc) from exc
    return [ReservationRead.from_db(reservation=row) for row in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_user_reservation(
            res_repo, reservation_id=reservation_id, user_id=user_id
        )
    except StoreUnavailableError as exc:
        raise _http_error(exc) from exc
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    return ReservationRead.from_db(reservation=reservation)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationTransition] = None,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    version = _extract_version(if_match, payload)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        async with session.begin():
            updated, status_from = await reservation_usecase.cancel_reservation(
                res_repo,
                reservation_id=reservation_id,
                user_id=user_id,
                version=version,
            )
    except (ReservationNotFoundError, VersionConflictError, StatusTransitionError, StoreUnavailableError) as exc:
        raise _http_error(exc) from exc

    if status_from != updated.status:
        try:
            emit_audit_log(
                action="reservation.cancelled",
                initiator="user",
                reservation_id=updated.id,
                style=updated.style,
                resource_id=updated.resource_id,
                user_id=user_id,
                status_from=status_from,
                status_to=updated.status,
                version=updated.version,
            )
        except RuntimeError:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return ReservationRead.from_db(reservation=updated)


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationRead)
async def confirm_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationTransition] = None,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    approver_id: int = Depends(get_approver_id),
) -> ReservationRead:
    return await _approval_action(
        "confirm", reservation_id, _extract_version(if_match, payload), session, approver_id
    )


@router.post("/reservations/{reservation_id}/reject", response_model=ReservationRead)
async def reject_reservation(
    reservation_id: int = Path(..., ge=1),
    payload: Optional[ReservationTransition] = None,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    approver_id: int = Depends(get_approver_id),
) -> ReservationRead:
    return await _approval_action(
        "reject", reservation_id, _extract_version(if_match, payload), session, approver_id
    )


async def _approval_action(
    action: str,
    reservation_id: int,
    version: int,
    session: AsyncSession,
    approver_id: int,
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    transition = (
        reservation_usecase.confirm_reservation if action == "confirm" else reservation_usecase.reject_reservation
    )
    try:
        async with session.begin():
            updated, status_from = await transition(res_repo, reservation_id=reservation_id, version=version)
    except (ReservationNotFoundError, VersionConflictError, StatusTransitionError, StoreUnavailableError) as exc:
        raise _http_error(exc) from exc

    try:
        emit_audit_log(
            action="reservation.confirmed" if action == "confirm" else "reservation.rejected",
            initiator="approver",
            reservation_id=updated.id,
            style=updated.style,
            resource_id=updated.resource_id,
            user_id=updated.user_id,
            status_from=status_from,
            status_to=updated.status,
            version=updated.version,
            extra={"approver_id": approver_id},
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return ReservationRead.from_db(reservation=updated)

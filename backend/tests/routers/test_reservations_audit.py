from datetime import date, datetime, timedelta, timezone
from typing import Any, cast

import pytest
from app.domain.errors import StoreUnavailableError
from app.domain.services import AdmissionVerdict, ReasonCode
from app.models import Reservation, ReservationStatus, ReservationStyle
from app.routers import reservations as router
from app.schemas import CommitRead, ReservationCreate, ReservationTransition, SlotCandidate
from app.usecases.admission import CommitOutcome
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _reservation(status: ReservationStatus = ReservationStatus.CONFIRMED, version: int = 1) -> Reservation:
    starts_at = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=2)
    return Reservation(
        id=100,
        style=ReservationStyle.SLOT,
        resource_id=None,
        user_id=200,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=30),
        slot_date=date(2024, 6, 3),
        slot_minute=540,
        duration_minutes=30,
        status=status,
        version=version,
        created_at=starts_at,
        updated_at=starts_at,
    )


def _payload() -> ReservationCreate:
    return ReservationCreate(candidate=SlotCandidate(date=date(2024, 6, 3), time="09:00", duration_minutes=30))


def _patch_repos(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "build_config_repo", lambda s: s)
    monkeypatch.setattr(router, "SqlAlchemyResourceRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]


@pytest.mark.asyncio
async def test_commit_emits_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation()

    async def fake_commit(*args: object, **kwargs: object) -> CommitOutcome:
        verdict = AdmissionVerdict(admitted=True, reason_code=ReasonCode.ADMITTED, assigned_slot=540)
        return CommitOutcome(verdict=verdict, reservation=reservation)

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.admission_usecase, "commit_reservation", fake_commit)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result: CommitRead = await router.create_reservation(
        payload=_payload(),
        session=cast(AsyncSession, DummySession()),
        user_id=reservation.user_id,
    )

    assert result.reservation.reservation_id == reservation.id
    assert result.reservation.slot_time == "09:00"
    assert result.verdict.assigned_slot == "09:00"
    assert len(calls) == 1
    assert calls[0]["action"] == "reservation.committed"
    assert calls[0]["status_to"] == ReservationStatus.CONFIRMED


@pytest.mark.asyncio
async def test_rejected_commit_returns_409_with_verdict(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_commit(*args: object, **kwargs: object) -> CommitOutcome:
        return CommitOutcome(verdict=AdmissionVerdict.reject(ReasonCode.SLOT_FULL, conflicts=(7,)))

    calls: list[dict[str, Any]] = []
    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.admission_usecase, "commit_reservation", fake_commit)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=_payload(), session=cast(AsyncSession, DummySession()), user_id=1)

    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["reason_code"] == "slot_full"  # type: ignore[index]
    assert excinfo.value.detail["conflicts"] == [7]  # type: ignore[index]
    assert calls[0]["action"] == "reservation.commit_rejected"


@pytest.mark.asyncio
async def test_store_outage_maps_to_503(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_commit(*args: object, **kwargs: object) -> CommitOutcome:
        raise StoreUnavailableError("reservation query failed")

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.admission_usecase, "commit_reservation", fake_commit)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=_payload(), session=cast(AsyncSession, DummySession()), user_id=1)
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(status=ReservationStatus.CANCELLED, version=2)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        return reservation, ReservationStatus.CONFIRMED

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=reservation.id,
            payload=ReservationTransition(version=1),
            if_match='"1"',
            session=cast(AsyncSession, DummySession()),
            user_id=reservation.user_id,
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_repeat_cancel_skips_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(status=ReservationStatus.CANCELLED, version=2)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        return reservation, ReservationStatus.CANCELLED

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result = await router.cancel_reservation(
        reservation_id=reservation.id,
        payload=None,
        if_match='W/"2"',
        session=cast(AsyncSession, DummySession()),
        user_id=reservation.user_id,
    )
    assert result.status == ReservationStatus.CANCELLED
    assert calls == []


@pytest.mark.asyncio
async def test_confirm_is_audited_as_approver(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(status=ReservationStatus.CONFIRMED, version=2)

    async def fake_confirm(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        return reservation, ReservationStatus.PENDING

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.reservation_usecase, "confirm_reservation", fake_confirm)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    await router.confirm_reservation(
        reservation_id=reservation.id,
        payload=ReservationTransition(version=1),
        if_match=None,
        session=cast(AsyncSession, DummySession()),
        approver_id=9,
    )
    assert calls[0]["action"] == "reservation.confirmed"
    assert calls[0]["initiator"] == "approver"
    assert calls[0]["extra"] == {"approver_id": 9}


@pytest.mark.asyncio
async def test_integrity_error_maps_to_409_and_keeps_cause(monkeypatch: pytest.MonkeyPatch) -> None:
    error = IntegrityError("INSERT", None, Exception("duplicate"))

    async def fake_commit(*args: object, **kwargs: object) -> CommitOutcome:
        raise error

    _patch_repos(monkeypatch)
    monkeypatch.setattr(router.admission_usecase, "commit_reservation", fake_commit)

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(payload=_payload(), session=cast(AsyncSession, DummySession()), user_id=1)
    assert excinfo.value.status_code == 409
    assert excinfo.value.__cause__ is error

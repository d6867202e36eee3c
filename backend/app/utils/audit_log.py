from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.committed",
    "reservation.commit_rejected",
    "reservation.confirmed",
    "reservation.rejected",
    "reservation.cancelled",
]
AuditInitiator = Literal["user", "approver", "system"]


def _build_audit_logger() -> logging.Logger:
    logger = logging.getLogger("audit")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    if not logger.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(stream)
    return logger


_audit_logger = _build_audit_logger()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class AuditEntry:
    """One line of the reservation audit trail."""

    action: AuditAction
    initiator: AuditInitiator
    reservation_id: Optional[int]
    style: Optional[str]
    resource_id: Optional[int]
    user_id: Optional[int]
    status_from: Optional[str]
    status_to: Optional[str]
    version: Optional[int]
    reason_code: Optional[str] = None
    message: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self, extra: Optional[dict[str, Any]] = None) -> str:
        fields = {key: _plain(value) for key, value in asdict(self).items() if value is not None}
        fields["level"] = "info"
        if extra:
            fields.update(extra)
        return json.dumps(fields, ensure_ascii=True)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    reservation_id: Optional[int],
    style: Optional[str],
    resource_id: Optional[int],
    user_id: Optional[int],
    status_from: Optional[str],
    status_to: Optional[str],
    version: Optional[int],
    reason_code: Optional[str] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Write one JSON audit line; None fields are omitted. Raises RuntimeError if logging fails."""
    entry = AuditEntry(
        action=action,
        initiator=initiator,
        reservation_id=reservation_id,
        style=style,
        resource_id=resource_id,
        user_id=user_id,
        status_from=status_from,
        status_to=status_to,
        version=version,
        reason_code=reason_code,
        message=message,
        request_id=get_request_id(),
    )
    try:
        _audit_logger.info(entry.to_json(extra))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc

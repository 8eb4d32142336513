from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.cancelled",
    "booking.deleted",
    "space.created",
    "space.activated",
    "space.deactivated",
    "space.deleted",
]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _plain(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return value


def emit_audit_log(
    *,
    action: AuditAction,
    actor_id: int,
    space_id: Optional[int],
    booking_id: Optional[int] = None,
    status_from: Any = None,
    status_to: Any = None,
    vehicle_count: Optional[int] = None,
    total_price: Optional[Decimal] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Write one JSON line to the `audit` logger. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "request_id": get_request_id(),
        "actor_id": actor_id,
        "space_id": space_id,
        "booking_id": booking_id,
        "status_from": _plain(status_from),
        "status_to": _plain(status_to),
        "vehicle_count": vehicle_count,
        "total_price": _plain(total_price),
    }
    if extra:
        payload.update({key: _plain(value) for key, value in extra.items()})

    compact = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc

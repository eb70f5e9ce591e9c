from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from catalog_pricing.models.audit import AuditEvent


@dataclass(frozen=True)
class AuditWrite:
    action_type: str
    actor: str
    tenant_id: str
    target_type: str
    target_id: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = None
    audit_id: Optional[str] = None  # optional idempotency key


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def snapshot(row: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """JSON-safe before/after image of selected ORM attributes."""
    return {name: _json_safe(getattr(row, name)) for name in fields}


class AuditLogger:
    """
    Audit writer bound to the caller's unit of work.
    - Requires actor, action_type, tenant and target
    - Fail closed: a rejected write raises and the surrounding mutation is not committed
    - The event row is added to the same session, so it commits (or rolls back) with the change
    """

    def __init__(self, db: Session):
        self._db = db

    @staticmethod
    def _ensure_required(w: AuditWrite) -> None:
        if not w.action_type or not str(w.action_type).strip():
            raise ValueError("action_type is required")
        if not w.actor:
            raise ValueError("actor is required")
        if not w.tenant_id:
            raise ValueError("tenant_id is required")
        if not w.target_type or not w.target_id:
            raise ValueError("target_type and target_id are required")

    def log(self, w: AuditWrite) -> str:
        self._ensure_required(w)

        audit_id = w.audit_id or f"{w.action_type.lower()}:{uuid.uuid4().hex}"

        self._db.add(
            AuditEvent(
                audit_id=audit_id,
                tenant_id=w.tenant_id,
                action_type=w.action_type,
                actor=w.actor,
                target_type=w.target_type,
                target_id=str(w.target_id),
                old_value=_json_safe(w.old_value),
                new_value=_json_safe(w.new_value),
                meta=_json_safe(w.meta),
            )
        )
        return audit_id

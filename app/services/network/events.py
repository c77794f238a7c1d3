"""Audit trail of subnet and pool changes."""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.network import IpPoolEvent
from app.services.common import apply_pagination, coerce_uuid


def _normalize(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {key: _normalize(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    return value


def record(
    db: Session,
    action: str,
    subnet_id=None,
    actor: str | None = None,
    **details,
) -> IpPoolEvent:
    """Stage an event on the session; it is committed with the caller's change."""
    event = IpPoolEvent(
        subnet_id=coerce_uuid(subnet_id),
        action=action,
        actor=actor,
        details=_normalize(details),
    )
    db.add(event)
    return event


def list_for_subnet(db: Session, subnet_id, limit: int, offset: int) -> list[IpPoolEvent]:
    query = (
        db.query(IpPoolEvent)
        .filter(IpPoolEvent.subnet_id == coerce_uuid(subnet_id))
        .order_by(IpPoolEvent.created_at.desc())
    )
    return apply_pagination(query, limit, offset).all()

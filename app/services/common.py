"""Common helper functions for service layer.

This module provides reusable utilities for:
- UUID handling
- Query ordering and pagination
- Enum validation
- Entity retrieval with 404 handling
- Percentage rounding
"""

from __future__ import annotations

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, TypeVar

from fastapi import HTTPException

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None.

    Raises:
        HTTPException: 404 if the value is not a UUID; an id that cannot exist
            is reported the same way as one that does not.
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="Resource not found") from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    """Apply ordering to a query with validation.

    Args:
        query: SQLAlchemy query object
        order_by: Column name to order by
        order_dir: Direction ('asc' or 'desc')
        allowed_columns: Dict mapping column names to SQLAlchemy columns

    Returns:
        Query with ordering applied

    Raises:
        HTTPException: 400 if order_by is not in allowed_columns
    """
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit: int, offset: int):
    """Apply pagination to a query."""
    return query.limit(limit).offset(offset)


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Args:
        value: Value to validate (can be None)
        enum_cls: Enum class to validate against
        label: Human-readable label for error messages

    Returns:
        Enum member or None if value is None

    Raises:
        HTTPException: 400 if value is not a valid enum member
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {label}") from exc


def get_or_404(db: Session, model: type[T], id, detail: str | None = None, **options) -> T:
    """Get entity by ID or raise 404.

    Args:
        db: Database session
        model: SQLAlchemy model class
        id: Entity ID
        detail: Custom error message (defaults to "{ModelName} not found")
        **options: Additional options passed to db.get()

    Raises:
        HTTPException: 404 if entity not found
    """
    entity = db.get(model, id, **options)
    if not entity:
        raise HTTPException(
            status_code=404,
            detail=detail or f"{model.__name__} not found"
        )
    return entity


def round_percent(part: int, whole: int) -> int:
    """Whole-number percentage of ``part`` in ``whole``, half rounded up; 0 when whole is 0."""
    if not whole:
        return 0
    ratio = Decimal(part) * 100 / Decimal(whole)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

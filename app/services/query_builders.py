"""Reusable query-builder helpers for service-layer list filtering."""

from __future__ import annotations


def apply_optional_equals(query, filters: dict):
    """Apply equality filters when values are not None."""
    for column, value in filters.items():
        if value is not None:
            query = query.filter(column == value)
    return query

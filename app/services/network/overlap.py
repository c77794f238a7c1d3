"""Pairwise overlap detection between IPv4 network ranges."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.models.network import Subnet
from app.services.network.cidr import NetworkRange
from app.services.network.errors import OverlapConflict


def ranges_overlap(a: NetworkRange, b: NetworkRange) -> bool:
    # Inclusive intersection on unsigned integers; covers subset and superset.
    return a.first_address <= b.last_address and b.first_address <= a.last_address


def find_overlaps(
    candidate: NetworkRange,
    existing: Iterable[NetworkRange],
    exclude_id=None,
) -> list[NetworkRange]:
    """Return every existing range that intersects ``candidate``.

    ``exclude_id`` skips the range with that id, which is how an edit in place
    avoids colliding with its own previous version.
    """
    exclude = str(exclude_id) if exclude_id is not None else None
    conflicts = [
        other
        for other in existing
        if not (exclude is not None and other.id is not None and str(other.id) == exclude)
        and ranges_overlap(candidate, other)
    ]
    conflicts.sort(key=lambda item: (item.first_address, item.prefix))
    return conflicts


def describe(conflicts: Iterable[NetworkRange]) -> list[dict]:
    return [
        {
            "id": str(item.id) if item.id is not None else None,
            "cidr": item.cidr,
            "name": item.name,
        }
        for item in conflicts
    ]


def stored_conflicts(db: Session, candidate: NetworkRange, exclude_id=None) -> list[NetworkRange]:
    """Stored subnets intersecting ``candidate``.

    The range predicate narrows the scan through ``ix_subnets_range``; the
    in-memory detector still makes the final decision.
    """
    rows = (
        db.query(Subnet.id, Subnet.first_address, Subnet.prefix_length, Subnet.name)
        .filter(
            Subnet.first_address <= candidate.last_address,
            Subnet.last_address >= candidate.first_address,
        )
        .all()
    )
    existing = [
        NetworkRange(network=row.first_address, prefix=row.prefix_length, id=row.id, name=row.name)
        for row in rows
    ]
    return find_overlaps(candidate, existing, exclude_id=exclude_id)


def ensure_no_overlap(db: Session, candidate: NetworkRange, exclude_id=None) -> None:
    conflicts = stored_conflicts(db, candidate, exclude_id=exclude_id)
    if conflicts:
        raise OverlapConflict(candidate.cidr, describe(conflicts))

"""Allocation ledger: address status, customer bindings and utilization.

Status changes are single conditional ``UPDATE`` statements guarded on the
expected starting status, so two concurrent ``assign`` calls against the same
row cannot both succeed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.models.customer import Customer
from app.models.network import IPAddress, IPAddressStatus, Subnet
from app.services.common import (
    apply_pagination,
    coerce_uuid,
    get_or_404,
    round_percent,
    validate_enum,
)
from app.services.network import events
from app.services.network.errors import InvalidStateError, NoAddressAvailable
from app.services.response import ListResponseMixin
from app.validators import network as network_validators

logger = logging.getLogger(__name__)

_ASSIGN_NEXT_ATTEMPTS = 5


def _empty_counts() -> dict[str, int]:
    return {"total": 0, "assigned": 0, "available": 0, "reserved": 0}


def pool_counts(db: Session, subnet_id) -> dict[str, int]:
    return pool_counts_map(db, [subnet_id]).get(coerce_uuid(subnet_id), _empty_counts())


def pool_counts_map(db: Session, subnet_ids) -> dict:
    """Per-status address counts for several subnets in one grouped query."""
    ids = [coerce_uuid(value) for value in subnet_ids]
    if not ids:
        return {}
    rows = (
        db.query(IPAddress.subnet_id, IPAddress.status, func.count(IPAddress.id))
        .filter(IPAddress.subnet_id.in_(ids))
        .group_by(IPAddress.subnet_id, IPAddress.status)
        .all()
    )
    counts: dict = {subnet_id: _empty_counts() for subnet_id in ids}
    for subnet_id, status, count in rows:
        bucket = counts.setdefault(subnet_id, _empty_counts())
        bucket[status.value] = int(count)
        bucket["total"] += int(count)
    return counts


def utilization_from_counts(counts: dict[str, int]) -> dict[str, int]:
    total = counts.get("total", 0)
    assigned = counts.get("assigned", 0)
    return {
        "total": total,
        "assigned": assigned,
        "free": counts.get("available", 0),
        "reserved": counts.get("reserved", 0),
        "percent": round_percent(assigned, total),
    }


class IPAddresses(ListResponseMixin):
    @staticmethod
    def get(db: Session, address_id) -> IPAddress:
        return get_or_404(
            db,
            IPAddress,
            coerce_uuid(address_id),
            detail="IP address not found",
            options=[joinedload(IPAddress.customer), joinedload(IPAddress.subnet)],
        )

    @staticmethod
    def list(
        db: Session,
        subnet_id,
        status: str | None,
        search: str | None,
        limit: int,
        offset: int,
    ) -> list[IPAddress]:
        query = db.query(IPAddress).options(joinedload(IPAddress.customer))
        if subnet_id is not None:
            query = query.filter(IPAddress.subnet_id == coerce_uuid(subnet_id))
        if status:
            query = query.filter(
                IPAddress.status == validate_enum(status, IPAddressStatus, "status")
            )
        term = (search or "").strip()
        if term:
            full_name = func.coalesce(Customer.first_name, "") + " " + func.coalesce(
                Customer.last_name, ""
            )
            query = query.outerjoin(Customer, IPAddress.customer_id == Customer.id).filter(
                or_(
                    IPAddress.address.icontains(term, autoescape=True),
                    Customer.first_name.icontains(term, autoescape=True),
                    Customer.last_name.icontains(term, autoescape=True),
                    Customer.business_name.icontains(term, autoescape=True),
                    full_name.icontains(term, autoescape=True),
                )
            )
        query = query.order_by(IPAddress.subnet_id, IPAddress.address_int)
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def list_by_subnet(
        cls,
        db: Session,
        subnet_id,
        status: str | None = None,
        search: str | None = None,
        limit: int = 1000,
        offset: int = 0,
    ) -> list[IPAddress]:
        get_or_404(db, Subnet, coerce_uuid(subnet_id), detail="Subnet not found")
        return cls.list(db, subnet_id, status, search, limit, offset)

    @classmethod
    def assign(
        cls,
        db: Session,
        address_id,
        customer_id: int,
        service_id: int | None = None,
        actor: str | None = None,
    ) -> IPAddress:
        address_uuid = coerce_uuid(address_id)
        network_validators.validate_ip_binding(db, customer_id, service_id)
        if not cls._claim(db, address_uuid, customer_id, service_id):
            address = cls.get(db, address_uuid)
            raise InvalidStateError(
                f"IP address {address.address} is {address.status.value}, not available",
                {"address_id": str(address.id), "status": address.status.value},
            )
        return cls._finish_assignment(db, address_uuid, customer_id, service_id, actor)

    @classmethod
    def assign_next(
        cls,
        db: Session,
        subnet_id,
        customer_id: int,
        service_id: int | None = None,
        actor: str | None = None,
    ) -> IPAddress:
        """Assign the lowest available address in a subnet."""
        subnet = get_or_404(db, Subnet, coerce_uuid(subnet_id), detail="Subnet not found")
        network_validators.validate_ip_binding(db, customer_id, service_id)
        for _ in range(_ASSIGN_NEXT_ATTEMPTS):
            candidate_id = (
                db.query(IPAddress.id)
                .filter(
                    IPAddress.subnet_id == subnet.id,
                    IPAddress.status == IPAddressStatus.available,
                )
                .order_by(IPAddress.address_int)
                .limit(1)
                .with_for_update(skip_locked=True)
                .scalar()
            )
            if candidate_id is None:
                raise NoAddressAvailable(
                    f"No available IP addresses in subnet {subnet.label}",
                    {"subnet_id": str(subnet.id)},
                )
            if cls._claim(db, candidate_id, customer_id, service_id):
                return cls._finish_assignment(db, candidate_id, customer_id, service_id, actor)
            logger.info(
                "Lost race for address, retrying",
                extra={"subnet_id": subnet.id, "address_id": candidate_id},
            )
        raise NoAddressAvailable(
            f"Could not claim an address in subnet {subnet.label}; try again",
            {"subnet_id": str(subnet.id)},
        )

    @classmethod
    def release(cls, db: Session, address_id, actor: str | None = None) -> IPAddress:
        address_uuid = coerce_uuid(address_id)
        previous = (
            db.query(IPAddress.customer_id, IPAddress.service_id)
            .filter(IPAddress.id == address_uuid)
            .one_or_none()
        )
        updated = (
            db.query(IPAddress)
            .filter(
                IPAddress.id == address_uuid,
                IPAddress.status == IPAddressStatus.assigned,
            )
            .update(
                {
                    IPAddress.status: IPAddressStatus.available,
                    IPAddress.customer_id: None,
                    IPAddress.service_id: None,
                    IPAddress.assigned_at: None,
                    IPAddress.last_seen_at: None,
                    IPAddress.updated_at: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            address = cls.get(db, address_uuid)
            raise InvalidStateError(
                f"IP address {address.address} is {address.status.value}, not assigned",
                {"address_id": str(address.id), "status": address.status.value},
            )
        address = db.get(IPAddress, address_uuid)
        db.refresh(address)
        events.record(
            db,
            "address_released",
            subnet_id=address.subnet_id,
            actor=actor,
            address=address.address,
            customer_id=previous.customer_id if previous else None,
            service_id=previous.service_id if previous else None,
        )
        db.commit()
        db.refresh(address)
        logger.info(
            "Released %s",
            address.address,
            extra={"subnet_id": address.subnet_id, "address_id": address.id},
        )
        return address

    @classmethod
    def mark_seen(cls, db: Session, address_id, seen_at: datetime | None = None) -> IPAddress:
        address = cls.get(db, address_id)
        address.last_seen_at = seen_at or datetime.now(timezone.utc)
        db.commit()
        db.refresh(address)
        return address

    @staticmethod
    def utilization(db: Session, subnet_id) -> dict[str, int]:
        get_or_404(db, Subnet, coerce_uuid(subnet_id), detail="Subnet not found")
        return utilization_from_counts(pool_counts(db, subnet_id))

    @staticmethod
    def _claim(db: Session, address_uuid, customer_id: int, service_id: int | None) -> bool:
        now = datetime.now(timezone.utc)
        updated = (
            db.query(IPAddress)
            .filter(
                IPAddress.id == address_uuid,
                IPAddress.status == IPAddressStatus.available,
            )
            .update(
                {
                    IPAddress.status: IPAddressStatus.assigned,
                    IPAddress.customer_id: customer_id,
                    IPAddress.service_id: service_id,
                    IPAddress.assigned_at: now,
                    IPAddress.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def _finish_assignment(
        db: Session,
        address_uuid,
        customer_id: int,
        service_id: int | None,
        actor: str | None,
    ) -> IPAddress:
        address = db.get(IPAddress, address_uuid)
        db.refresh(address)
        events.record(
            db,
            "address_assigned",
            subnet_id=address.subnet_id,
            actor=actor,
            address=address.address,
            customer_id=customer_id,
            customer_name=address.customer.display_name if address.customer else None,
            service_id=service_id,
        )
        db.commit()
        db.refresh(address)
        logger.info(
            "Assigned %s to customer %s",
            address.address,
            customer_id,
            extra={"subnet_id": address.subnet_id, "address_id": address.id},
        )
        return address


ip_addresses = IPAddresses()

"""Subnet lifecycle: validate, check for overlap, persist.

Every create or update runs the same pipeline: the CIDR validator, the router
check, gateway resolution and the overlap detector, all before anything is
written. On PostgreSQL the exclusion constraint on ``subnets`` backs up the
detector for writes that race each other.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.network import AllocationMode, IPAddress, Subnet, SubnetType
from app.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    validate_enum,
)
from app.services.crud import CRUDManager
from app.services.network import cidr as cidr_rules
from app.services.network import events
from app.services.network.cidr import NetworkRange, int_to_ip
from app.services.network.errors import FormatError, OverlapConflict, PoolAlreadyExists
from app.services.network.ledger import pool_counts, pool_counts_map, utilization_from_counts
from app.services.network.overlap import describe, ensure_no_overlap, stored_conflicts
from app.services.network.pool import (
    IpPools,
    network_for,
    reserved_gateway,
    resolve_gateway,
)
from app.services.query_builders import apply_optional_equals
from app.validators import network as network_validators

logger = logging.getLogger(__name__)


def _subnet_type(value, network: NetworkRange) -> SubnetType:
    subnet_type = validate_enum(value or cidr_rules.classify(network), SubnetType, "subnet type")
    if subnet_type == SubnetType.ipv6:
        raise FormatError("IPv6 subnets are not supported; use an IPv4 CIDR")
    return subnet_type


def _explicit_gateway(network: NetworkRange, gateway: str | None) -> str | None:
    if not gateway:
        return None
    return int_to_ip(resolve_gateway(network, gateway))


def describe_subnet(subnet: Subnet, counts: dict[str, int]) -> dict:
    """Response view of a subnet with its network facts and pool utilization."""
    network = network_for(subnet)
    gateway = reserved_gateway(network, subnet.gateway)
    return {
        "id": subnet.id,
        "router_id": subnet.router_id,
        "cidr": subnet.cidr,
        "network_address": subnet.network_address,
        "prefix_length": subnet.prefix_length,
        "netmask": network.netmask,
        "broadcast_address": int_to_ip(network.broadcast),
        "total_addresses": network.total,
        "subnet_type": subnet.subnet_type,
        "allocation_mode": subnet.allocation_mode,
        "name": subnet.name,
        "description": subnet.description,
        "gateway": subnet.gateway,
        "effective_gateway": int_to_ip(gateway) if gateway is not None else None,
        "utilization": utilization_from_counts(counts),
        "created_at": subnet.created_at,
        "updated_at": subnet.updated_at,
    }


class Subnets(CRUDManager[Subnet]):
    model = Subnet
    not_found_detail = "Subnet not found"

    @classmethod
    def create(cls, db: Session, payload, actor: str | None = None) -> Subnet:
        data = cls._payload_dict(payload, exclude_unset=False)
        network = cidr_rules.validate(data["cidr"])
        network_validators.validate_router_exists(db, data["router_id"])
        gateway = _explicit_gateway(network, data.get("gateway"))
        subnet_type = _subnet_type(data.get("subnet_type"), network)
        allocation_mode = validate_enum(
            data.get("allocation_mode") or AllocationMode.dynamic,
            AllocationMode,
            "allocation mode",
        )
        ensure_no_overlap(db, network)

        subnet = Subnet(
            id=uuid.uuid4(),
            router_id=data["router_id"],
            cidr=network.cidr,
            network_address=network.network_address,
            prefix_length=network.prefix,
            first_address=network.first_address,
            last_address=network.last_address,
            subnet_type=subnet_type,
            allocation_mode=allocation_mode,
            name=data.get("name"),
            description=data.get("description"),
            gateway=gateway,
        )
        db.add(subnet)
        events.record(
            db,
            "subnet_created",
            subnet_id=subnet.id,
            actor=actor,
            cidr=network.cidr,
            name=subnet.name,
            router_id=subnet.router_id,
        )
        cls._commit(db, network)
        db.refresh(subnet)
        logger.info(
            "Created subnet %s",
            subnet.label,
            extra={"subnet_id": subnet.id, "cidr": subnet.cidr},
        )
        return subnet

    @staticmethod
    def list(
        db: Session,
        router_id: int | None,
        subnet_type: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Subnet]:
        query = apply_optional_equals(
            db.query(Subnet),
            {
                Subnet.router_id: router_id,
                Subnet.subnet_type: validate_enum(subnet_type, SubnetType, "subnet type"),
            },
        )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "cidr": Subnet.first_address,
                "name": Subnet.name,
                "created_at": Subnet.created_at,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def present(cls, db: Session, items: list[Subnet]) -> list[dict]:
        counts = pool_counts_map(db, [subnet.id for subnet in items])
        return [describe_subnet(subnet, counts[subnet.id]) for subnet in items]

    @classmethod
    def detail(cls, db: Session, subnet_id) -> dict:
        subnet = cls.get(db, subnet_id)
        return describe_subnet(subnet, pool_counts(db, subnet.id))

    @classmethod
    def update(cls, db: Session, subnet_id, payload, actor: str | None = None) -> Subnet:
        """Edit a subnet in place.

        A new CIDR is re-validated and re-checked for overlap against every
        other subnet. Changing the range or gateway of a subnet that already
        has a pool needs ``regenerate_pool``; the pool is then rebuilt in the
        same transaction.
        """
        subnet = (
            db.query(Subnet)
            .filter(Subnet.id == coerce_uuid(subnet_id))
            .with_for_update()
            .one_or_none()
        )
        if subnet is None:
            raise HTTPException(status_code=404, detail=cls.not_found_detail)

        data = cls._payload_dict(payload, exclude_unset=True)
        regenerate = bool(data.pop("regenerate_pool", False))
        network = network_for(subnet)
        changes: dict = {}

        new_cidr = data.pop("cidr", None)
        if new_cidr is not None:
            candidate = cidr_rules.validate(new_cidr)
            if candidate.cidr != subnet.cidr:
                changes["cidr"] = {"from": subnet.cidr, "to": candidate.cidr}
                network = candidate
        range_changed = "cidr" in changes

        if "gateway" in data:
            gateway = _explicit_gateway(network, data.pop("gateway"))
        else:
            # A kept explicit gateway must still fit a moved range.
            gateway = _explicit_gateway(network, subnet.gateway)
        if gateway != subnet.gateway:
            changes["gateway"] = {"from": subnet.gateway, "to": gateway}

        if data.get("router_id") is not None and data["router_id"] != subnet.router_id:
            network_validators.validate_router_exists(db, data["router_id"])
            changes["router_id"] = {"from": subnet.router_id, "to": data["router_id"]}
        if data.get("subnet_type") is not None:
            subnet_type = _subnet_type(data["subnet_type"], network)
            if subnet_type != subnet.subnet_type:
                changes["subnet_type"] = {"from": subnet.subnet_type, "to": subnet_type}
        if data.get("allocation_mode") is not None:
            allocation_mode = validate_enum(
                data["allocation_mode"], AllocationMode, "allocation mode"
            )
            if allocation_mode != subnet.allocation_mode:
                changes["allocation_mode"] = {
                    "from": subnet.allocation_mode,
                    "to": allocation_mode,
                }
        for key in ("name", "description"):
            if key in data and data[key] != getattr(subnet, key):
                changes[key] = {"from": getattr(subnet, key), "to": data[key]}

        if range_changed:
            ensure_no_overlap(db, network, exclude_id=subnet.id)

        counts = pool_counts(db, subnet.id)
        pool_affected = bool(counts["total"]) and (range_changed or "gateway" in changes)
        if pool_affected and not regenerate:
            raise PoolAlreadyExists(subnet.label, counts)

        if range_changed:
            subnet.cidr = network.cidr
            subnet.network_address = network.network_address
            subnet.prefix_length = network.prefix
            subnet.first_address = network.first_address
            subnet.last_address = network.last_address
        for key, change in changes.items():
            if key != "cidr":
                setattr(subnet, key, change["to"])

        rebuilt = None
        if regenerate:
            rebuilt = IpPools.rebuild(db, subnet)
            db.expire(subnet, ["addresses"])

        events.record(
            db,
            "subnet_updated",
            subnet_id=subnet.id,
            actor=actor,
            cidr=subnet.cidr,
            changes=changes,
        )
        if rebuilt is not None:
            events.record(
                db,
                "pool_regenerated",
                subnet_id=subnet.id,
                actor=actor,
                cidr=subnet.cidr,
                gateway=int_to_ip(rebuilt.gateway),
                previous=counts,
                counts=rebuilt.counts,
            )
        cls._commit(db, network, exclude_id=subnet.id)
        db.refresh(subnet)
        logger.info(
            "Updated subnet %s (%s)",
            subnet.label,
            ", ".join(sorted(changes)) or "no changes",
            extra={"subnet_id": subnet.id, "cidr": subnet.cidr},
        )
        return subnet

    @classmethod
    def delete(cls, db: Session, subnet_id, actor: str | None = None) -> None:
        """Delete a subnet together with its whole pool, bindings included."""
        subnet = cls._get_or_404(db, subnet_id)
        counts = pool_counts(db, subnet.id)
        db.query(IPAddress).filter(IPAddress.subnet_id == subnet.id).delete(
            synchronize_session=False
        )
        db.expire(subnet, ["addresses"])
        events.record(
            db,
            "subnet_deleted",
            subnet_id=subnet.id,
            actor=actor,
            cidr=subnet.cidr,
            name=subnet.name,
            counts=counts,
        )
        db.delete(subnet)
        db.commit()
        logger.info(
            "Deleted subnet %s with %s addresses (%s assigned)",
            subnet.label,
            counts["total"],
            counts["assigned"],
            extra={"subnet_id": subnet.id, "cidr": subnet.cidr},
        )

    @staticmethod
    def check_overlap(db: Session, cidr: str, exclude_id=None) -> dict:
        network = cidr_rules.validate(cidr)
        conflicts = stored_conflicts(db, network, exclude_id=exclude_id)
        return {"overlaps": bool(conflicts), "subnets": describe(conflicts)}

    @staticmethod
    def _commit(db: Session, network: NetworkRange, exclude_id=None) -> None:
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            conflicts = stored_conflicts(db, network, exclude_id=exclude_id)
            if not conflicts:
                raise
            logger.warning(
                "Subnet write lost an overlap race",
                extra={"cidr": network.cidr},
            )
            raise OverlapConflict(network.cidr, describe(conflicts)) from exc


subnets = Subnets()

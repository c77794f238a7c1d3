"""Address pool generation for IPv4 subnets.

``plan_pool`` is the pure part: it lays out every address from the network
address to the broadcast address and decides which ones are reserved.
``IpPools.generate`` persists a plan, replacing any existing pool in the same
transaction while holding a row lock on the subnet.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import HTTPException
from sqlalchemy import insert
from sqlalchemy.orm import Session

from app.config import settings
from app.models.network import IPAddress, IPAddressStatus, ReservedReason, Subnet
from app.services.common import coerce_uuid
from app.services.network import events
from app.services.network.cidr import NetworkRange, int_to_ip, parse_address
from app.services.network.errors import PoolAlreadyExists, PoolTooLarge, RangeError
from app.services.network.ledger import pool_counts
from app.services.network.overlap import ensure_no_overlap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedAddress:
    address: str
    address_int: int
    status: IPAddressStatus
    reserved_reason: ReservedReason | None = None


@dataclass
class PoolPlan:
    network: NetworkRange
    gateway: int
    addresses: list[PlannedAddress] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        reserved = sum(1 for item in self.addresses if item.status == IPAddressStatus.reserved)
        total = len(self.addresses)
        return {
            "total": total,
            "reserved": reserved,
            "available": total - reserved,
            "assigned": 0,
        }


@dataclass(frozen=True)
class PoolGenerationResult:
    subnet_id: uuid.UUID
    regenerated: bool
    counts: dict
    addresses: list[PlannedAddress]

    @property
    def count(self) -> int:
        return self.counts["total"]


def resolve_gateway(
    network: NetworkRange,
    explicit: str | None = None,
    convention: str | None = None,
) -> int:
    """Gateway address for a network: the explicit one, else the configured usable end."""
    if explicit:
        gateway = parse_address(explicit, "Gateway")
        if not network.usable_first <= gateway <= network.usable_last:
            raise RangeError(
                f"Gateway {int_to_ip(gateway)} must be a usable address inside {network.cidr}"
            )
        return gateway
    if (convention or settings.ipam_gateway_convention) == "last":
        return network.usable_last
    return network.usable_first


def gateway_is_reserved(network: NetworkRange, gateway: int, explicit: bool = False) -> bool:
    """An explicit gateway is always reserved; a default one only off network+1."""
    if explicit or settings.ipam_reserve_first_usable_gateway:
        return True
    return gateway != network.usable_first


def reserved_gateway(network: NetworkRange, explicit: str | None = None) -> int | None:
    gateway = resolve_gateway(network, explicit)
    if gateway_is_reserved(network, gateway, explicit=bool(explicit)):
        return gateway
    return None


def plan_pool(
    network: NetworkRange,
    gateway: int | None = None,
    explicit: bool = False,
) -> PoolPlan:
    if gateway is None:
        gateway = resolve_gateway(network)
        explicit = False
    reserve_gateway = gateway_is_reserved(network, gateway, explicit=explicit)
    addresses: list[PlannedAddress] = []
    for value in range(network.first_address, network.last_address + 1):
        reason = None
        if value == network.network:
            reason = ReservedReason.network
        elif value == network.broadcast:
            reason = ReservedReason.broadcast
        elif value == gateway and reserve_gateway:
            reason = ReservedReason.gateway
        addresses.append(
            PlannedAddress(
                address=int_to_ip(value),
                address_int=value,
                status=IPAddressStatus.reserved if reason else IPAddressStatus.available,
                reserved_reason=reason,
            )
        )
    return PoolPlan(network=network, gateway=gateway, addresses=addresses)


def network_for(subnet: Subnet) -> NetworkRange:
    return NetworkRange(
        network=subnet.first_address,
        prefix=subnet.prefix_length,
        id=subnet.id,
        name=subnet.name,
    )


def _batches(items: list, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


class IpPools:
    @staticmethod
    def plan_for(subnet: Subnet) -> PoolPlan:
        network = network_for(subnet)
        if network.total > settings.ipam_max_pool_size:
            raise PoolTooLarge(
                f"Subnet {subnet.label} has {network.total} addresses; pools are limited "
                f"to {settings.ipam_max_pool_size} addresses",
                {"total": network.total, "limit": settings.ipam_max_pool_size},
            )
        return plan_pool(
            network,
            resolve_gateway(network, subnet.gateway),
            explicit=bool(subnet.gateway),
        )

    @classmethod
    def rebuild(cls, db: Session, subnet: Subnet) -> PoolPlan:
        """Replace a subnet's address rows without committing."""
        plan = cls.plan_for(subnet)
        db.query(IPAddress).filter(IPAddress.subnet_id == subnet.id).delete(
            synchronize_session=False
        )
        now = datetime.now(timezone.utc)
        rows = [
            {
                "id": uuid.uuid4(),
                "subnet_id": subnet.id,
                "address": item.address,
                "address_int": item.address_int,
                "status": item.status,
                "reserved_reason": item.reserved_reason,
                "created_at": now,
                "updated_at": now,
            }
            for item in plan.addresses
        ]
        for batch in _batches(rows, max(1, settings.ipam_insert_batch_size)):
            db.execute(insert(IPAddress), batch)
        return plan

    @classmethod
    def generate(
        cls,
        db: Session,
        subnet_id,
        regenerate: bool = False,
        actor: str | None = None,
    ) -> PoolGenerationResult:
        subnet = (
            db.query(Subnet)
            .filter(Subnet.id == coerce_uuid(subnet_id))
            .with_for_update()
            .one_or_none()
        )
        if subnet is None:
            raise HTTPException(status_code=404, detail="Subnet not found")

        existing = pool_counts(db, subnet.id)
        if existing["total"] and not regenerate:
            logger.warning(
                "Pool generation refused, pool exists",
                extra={"subnet_id": subnet.id, "cidr": subnet.cidr},
            )
            raise PoolAlreadyExists(subnet.label, existing)

        ensure_no_overlap(db, network_for(subnet), exclude_id=subnet.id)
        plan = cls.rebuild(db, subnet)
        regenerated = bool(existing["total"])
        events.record(
            db,
            "pool_regenerated" if regenerated else "pool_generated",
            subnet_id=subnet.id,
            actor=actor,
            cidr=subnet.cidr,
            gateway=int_to_ip(plan.gateway),
            previous=existing,
            counts=plan.counts,
        )
        db.commit()
        logger.info(
            "%s pool for %s: %s addresses",
            "Regenerated" if regenerated else "Generated",
            subnet.cidr,
            plan.counts["total"],
            extra={"subnet_id": subnet.id, "cidr": subnet.cidr},
        )
        return PoolGenerationResult(
            subnet_id=subnet.id,
            regenerated=regenerated,
            counts=plan.counts,
            addresses=plan.addresses,
        )


ip_pools = IpPools()

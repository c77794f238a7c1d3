from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    DDL,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base


class SubnetType(enum.Enum):
    public = "public"
    private = "private"
    cgnat = "cgnat"
    ipv6 = "ipv6"


class AllocationMode(enum.Enum):
    dynamic = "dynamic"
    static = "static"


class IPAddressStatus(enum.Enum):
    available = "available"
    assigned = "assigned"
    reserved = "reserved"


class ReservedReason(enum.Enum):
    network = "network"
    broadcast = "broadcast"
    gateway = "gateway"


@dataclass(frozen=True)
class Available:
    pass


@dataclass(frozen=True)
class Assigned:
    customer_id: int
    service_id: int | None
    since: datetime | None


@dataclass(frozen=True)
class Reserved:
    reason: ReservedReason


AddressState = Available | Assigned | Reserved


class Router(Base):
    """Router inventory row owned by the device-management side of the dashboard."""

    __tablename__ = "routers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64))
    location: Mapped[str | None] = mapped_column(String(160))

    subnets = relationship("Subnet", back_populates="router")


class Subnet(Base):
    __tablename__ = "subnets"
    __table_args__ = (
        UniqueConstraint("cidr", name="uq_subnets_cidr"),
        CheckConstraint("first_address <= last_address", name="ck_subnets_range_order"),
        CheckConstraint(
            "prefix_length >= 0 AND prefix_length <= 32", name="ck_subnets_prefix_length"
        ),
        Index("ix_subnets_range", "first_address", "last_address"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    router_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("routers.id"), nullable=False, index=True
    )
    cidr: Mapped[str] = mapped_column(String(18), nullable=False)
    network_address: Mapped[str] = mapped_column(String(15), nullable=False)
    prefix_length: Mapped[int] = mapped_column(Integer, nullable=False)
    first_address: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_address: Mapped[int] = mapped_column(BigInteger, nullable=False)
    subnet_type: Mapped[SubnetType] = mapped_column(
        Enum(SubnetType), default=SubnetType.private, nullable=False
    )
    allocation_mode: Mapped[AllocationMode] = mapped_column(
        Enum(AllocationMode), default=AllocationMode.dynamic, nullable=False
    )
    name: Mapped[str | None] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    gateway: Mapped[str | None] = mapped_column(String(15))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    router = relationship("Router", back_populates="subnets")
    addresses = relationship(
        "IPAddress",
        back_populates="subnet",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def label(self) -> str:
        return f"{self.name} ({self.cidr})" if self.name else self.cidr


# The overlap check in the service layer is a fast path; on PostgreSQL this
# constraint is what actually keeps address space globally unique.
event.listen(
    Subnet.__table__,
    "after_create",
    DDL(
        "ALTER TABLE subnets ADD CONSTRAINT ex_subnets_no_overlap "
        "EXCLUDE USING gist (int8range(first_address, last_address, '[]') WITH &&)"
    ).execute_if(dialect="postgresql"),
)


class IPAddress(Base):
    __tablename__ = "ip_addresses"
    __table_args__ = (
        UniqueConstraint("subnet_id", "address", name="uq_ip_addresses_subnet_address"),
        CheckConstraint(
            "(status = 'assigned') = (customer_id IS NOT NULL)",
            name="ck_ip_addresses_assigned_binding",
        ),
        CheckConstraint(
            "(status = 'reserved') = (reserved_reason IS NOT NULL)",
            name="ck_ip_addresses_reserved_reason",
        ),
        Index("ix_ip_addresses_subnet_status", "subnet_id", "status"),
        Index("ix_ip_addresses_subnet_address_int", "subnet_id", "address_int"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    subnet_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("subnets.id", ondelete="CASCADE"),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(String(15), nullable=False)
    address_int: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[IPAddressStatus] = mapped_column(
        Enum(IPAddressStatus), default=IPAddressStatus.available, nullable=False
    )
    reserved_reason: Mapped[ReservedReason | None] = mapped_column(Enum(ReservedReason))
    customer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("customers.id"), index=True
    )
    service_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("customer_services.id")
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    subnet = relationship("Subnet", back_populates="addresses")
    customer = relationship("Customer")
    service = relationship("CustomerService")

    @property
    def first_name(self) -> str | None:
        return self.customer.first_name if self.customer else None

    @property
    def last_name(self) -> str | None:
        return self.customer.last_name if self.customer else None

    @property
    def business_name(self) -> str | None:
        return self.customer.business_name if self.customer else None

    @property
    def state(self) -> AddressState:
        if self.status == IPAddressStatus.reserved:
            return Reserved(reason=self.reserved_reason)
        if self.status == IPAddressStatus.assigned:
            return Assigned(
                customer_id=self.customer_id,
                service_id=self.service_id,
                since=self.assigned_at,
            )
        return Available()


class IpPoolEvent(Base):
    """Audit trail for subnet and pool changes.

    ``subnet_id`` has no foreign key; events outlive the subnet they describe.
    """

    __tablename__ = "ip_pool_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    subnet_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    actor: Mapped[str | None] = mapped_column(String(255))
    details: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

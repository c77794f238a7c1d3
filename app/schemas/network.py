from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.models.network import (
    AllocationMode,
    IPAddressStatus,
    ReservedReason,
    SubnetType,
)


class SubnetBase(BaseModel):
    router_id: int
    cidr: str = Field(min_length=1, max_length=64)
    subnet_type: SubnetType | None = Field(
        default=None,
        validation_alias=AliasChoices("type", "subnet_type"),
        serialization_alias="type",
    )
    allocation_mode: AllocationMode | None = None
    name: str | None = Field(default=None, max_length=120)
    description: str | None = None
    gateway: str | None = Field(default=None, max_length=64)


class SubnetCreate(SubnetBase):
    pass


class SubnetUpdate(BaseModel):
    router_id: int | None = None
    cidr: str | None = Field(default=None, min_length=1, max_length=64)
    subnet_type: SubnetType | None = Field(
        default=None,
        validation_alias=AliasChoices("type", "subnet_type"),
        serialization_alias="type",
    )
    allocation_mode: AllocationMode | None = None
    name: str | None = Field(default=None, max_length=120)
    description: str | None = None
    gateway: str | None = Field(default=None, max_length=64)
    regenerate_pool: bool = False


class UtilizationRead(BaseModel):
    total: int
    assigned: int
    free: int
    reserved: int
    percent: int


class SubnetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    router_id: int
    cidr: str
    network_address: str
    prefix_length: int
    netmask: str
    broadcast_address: str
    total_addresses: int
    subnet_type: SubnetType
    allocation_mode: AllocationMode
    name: str | None = None
    description: str | None = None
    gateway: str | None = None
    effective_gateway: str | None = None
    utilization: UtilizationRead
    created_at: datetime
    updated_at: datetime


class IPAddressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subnet_id: UUID
    address: str
    status: IPAddressStatus
    reserved_reason: ReservedReason | None = None
    customer_id: int | None = None
    service_id: int | None = None
    first_name: str | None = None
    last_name: str | None = None
    business_name: str | None = None
    assigned_at: datetime | None = None
    last_seen_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class IPAssignRequest(BaseModel):
    customer_id: int
    service_id: int | None = None


class IPSeenRequest(BaseModel):
    seen_at: datetime | None = None


class GeneratePoolRequest(BaseModel):
    regenerate: bool = False


class PoolCounts(BaseModel):
    total: int
    available: int
    reserved: int
    assigned: int


class GeneratePoolResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subnet_id: UUID
    count: int
    regenerated: bool
    counts: PoolCounts


class OverlapCheckRequest(BaseModel):
    cidr: str = Field(min_length=1, max_length=64)
    exclude_id: UUID | None = None


class OverlappingSubnet(BaseModel):
    id: UUID | None = None
    cidr: str
    name: str | None = None


class OverlapCheckResponse(BaseModel):
    overlaps: bool
    subnets: list[OverlappingSubnet]


class CidrValidationRequest(BaseModel):
    cidr: str = Field(min_length=1, max_length=64)


class NetworkSummary(BaseModel):
    cidr: str
    network_address: str
    prefix_length: int
    netmask: str
    broadcast_address: str
    usable_first: str
    usable_last: str
    total_addresses: int


class CidrValidationRead(BaseModel):
    is_valid: bool
    code: str | None = None
    error: str | None = None
    suggested_cidr: str | None = None
    network: NetworkSummary | None = None


class IpPoolEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subnet_id: UUID | None = None
    action: str
    actor: str | None = None
    details: dict
    created_at: datetime

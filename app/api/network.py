from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from app.db import get_db
from app.models.network import IPAddressStatus, SubnetType
from app.schemas.common import ListResponse
from app.schemas.network import (
    CidrValidationRead,
    CidrValidationRequest,
    GeneratePoolRequest,
    GeneratePoolResponse,
    IPAddressRead,
    IPAssignRequest,
    IpPoolEventRead,
    IPSeenRequest,
    OverlapCheckRequest,
    OverlapCheckResponse,
    SubnetCreate,
    SubnetRead,
    SubnetUpdate,
    UtilizationRead,
)
from app.services import network as network_service
from app.services.network import cidr as cidr_rules
from app.services.network import events as pool_events
from app.services.response import list_response

router = APIRouter(prefix="/network", tags=["network"])


@router.post(
    "/subnets",
    response_model=SubnetRead,
    status_code=status.HTTP_201_CREATED,
)
def create_subnet(
    payload: SubnetCreate,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    subnet = network_service.subnets.create(db, payload, actor=x_actor)
    return network_service.subnets.detail(db, subnet.id)


@router.get("/subnets", response_model=ListResponse[SubnetRead])
def list_subnets(
    router_id: int | None = None,
    subnet_type: SubnetType | None = None,
    order_by: str = Query(default="cidr"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return network_service.subnets.list_response(
        db, router_id, subnet_type, order_by, order_dir, limit, offset
    )


@router.get("/subnets/{subnet_id}", response_model=SubnetRead)
def get_subnet(subnet_id: str, db: Session = Depends(get_db)):
    return network_service.subnets.detail(db, subnet_id)


@router.put("/subnets/{subnet_id}", response_model=SubnetRead)
def update_subnet(
    subnet_id: str,
    payload: SubnetUpdate,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    subnet = network_service.subnets.update(db, subnet_id, payload, actor=x_actor)
    return network_service.subnets.detail(db, subnet.id)


@router.delete("/subnets/{subnet_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subnet(
    subnet_id: str,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    network_service.subnets.delete(db, subnet_id, actor=x_actor)


@router.post("/subnets/{subnet_id}/generate-ips", response_model=GeneratePoolResponse)
def generate_ips(
    subnet_id: str,
    payload: GeneratePoolRequest | None = None,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    regenerate = payload.regenerate if payload else False
    return network_service.ip_pools.generate(
        db, subnet_id, regenerate=regenerate, actor=x_actor
    )


@router.get("/subnets/{subnet_id}/utilization", response_model=UtilizationRead)
def get_subnet_utilization(subnet_id: str, db: Session = Depends(get_db)):
    return network_service.ip_addresses.utilization(db, subnet_id)


@router.get("/subnets/{subnet_id}/events", response_model=ListResponse[IpPoolEventRead])
def list_subnet_events(
    subnet_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = pool_events.list_for_subnet(db, subnet_id, limit, offset)
    return list_response(items, limit, offset)


@router.post("/subnets/{subnet_id}/assign-next", response_model=IPAddressRead)
def assign_next_ip(
    subnet_id: str,
    payload: IPAssignRequest,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    return network_service.ip_addresses.assign_next(
        db, subnet_id, payload.customer_id, payload.service_id, actor=x_actor
    )


@router.get("/ip-addresses", response_model=ListResponse[IPAddressRead])
def list_ip_addresses(
    subnet_id: str | None = None,
    status: IPAddressStatus | None = None,
    search: str | None = None,
    limit: int = Query(default=256, ge=1, le=4096),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    if subnet_id is not None:
        network_service.subnets.get(db, subnet_id)
    return network_service.ip_addresses.list_response(
        db, subnet_id, status, search, limit, offset
    )


@router.get("/ip-addresses/{address_id}", response_model=IPAddressRead)
def get_ip_address(address_id: str, db: Session = Depends(get_db)):
    return network_service.ip_addresses.get(db, address_id)


@router.post("/ip-addresses/{address_id}/assign", response_model=IPAddressRead)
def assign_ip_address(
    address_id: str,
    payload: IPAssignRequest,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    return network_service.ip_addresses.assign(
        db, address_id, payload.customer_id, payload.service_id, actor=x_actor
    )


@router.post("/ip-addresses/{address_id}/release", response_model=IPAddressRead)
def release_ip_address(
    address_id: str,
    db: Session = Depends(get_db),
    x_actor: str | None = Header(default=None),
):
    return network_service.ip_addresses.release(db, address_id, actor=x_actor)


@router.post("/ip-addresses/{address_id}/seen", response_model=IPAddressRead)
def mark_ip_address_seen(
    address_id: str,
    payload: IPSeenRequest | None = None,
    db: Session = Depends(get_db),
):
    seen_at = payload.seen_at if payload else None
    return network_service.ip_addresses.mark_seen(db, address_id, seen_at)


@router.post("/check-overlap", response_model=OverlapCheckResponse)
def check_overlap(payload: OverlapCheckRequest, db: Session = Depends(get_db)):
    return network_service.subnets.check_overlap(db, payload.cidr, payload.exclude_id)


@router.post("/validate-cidr", response_model=CidrValidationRead)
def validate_cidr(payload: CidrValidationRequest):
    return cidr_rules.check(payload.cidr)

from app.models.customer import Customer, CustomerService  # noqa: F401
from app.models.network import (  # noqa: F401
    AllocationMode,
    IPAddress,
    IPAddressStatus,
    IpPoolEvent,
    ReservedReason,
    Router,
    Subnet,
    SubnetType,
)

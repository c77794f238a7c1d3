"""Network services package.

This package provides the IPv4 address management services:
- CIDR validation (``cidr``)
- Overlap detection between subnets (``overlap``)
- Subnet lifecycle (``subnets``)
- Address pool generation (``pool``)
- Address allocation ledger and utilization (``ledger``)
- Audit trail of pool changes (``events``)
"""

from app.services.network.ledger import IPAddresses, ip_addresses
from app.services.network.pool import IpPools, ip_pools
from app.services.network.subnets import Subnets, subnets

__all__ = [
    "IPAddresses",
    "ip_addresses",
    "IpPools",
    "ip_pools",
    "Subnets",
    "subnets",
]

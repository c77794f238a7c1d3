"""Error taxonomy for subnet validation, pool generation and the address ledger.

Every error carries the HTTP status and machine-readable code it is rendered
with by ``app.errors``; none of them is retried automatically.
"""

from __future__ import annotations


class IpamError(Exception):
    status_code = 400
    code = "ipam_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FormatError(IpamError):
    code = "cidr_format"


class RangeError(IpamError):
    code = "cidr_range"


class InvalidAlignmentError(IpamError):
    code = "cidr_alignment"

    def __init__(self, message: str, suggested_cidr: str):
        super().__init__(message, {"suggested_cidr": suggested_cidr})
        self.suggested_cidr = suggested_cidr


class OverlapConflict(IpamError):
    status_code = 409
    code = "subnet_overlap"

    def __init__(self, cidr: str, subnets: list[dict]):
        labels = ", ".join(_label(item) for item in subnets) or "an existing subnet"
        super().__init__(
            f"{cidr} overlaps with: {labels}",
            {"cidr": cidr, "subnets": subnets},
        )
        self.subnets = subnets


class PoolAlreadyExists(IpamError):
    status_code = 409
    code = "pool_exists"

    def __init__(self, subnet_label: str, counts: dict):
        super().__init__(
            f"IP addresses already exist for subnet {subnet_label}; "
            "regenerate to rebuild the pool",
            {"requires_confirmation": True, "existing_count": counts.get("total", 0), **counts},
        )
        self.counts = counts


class PoolTooLarge(IpamError):
    code = "pool_too_large"


class InvalidStateError(IpamError):
    status_code = 409
    code = "invalid_state"


class NoAddressAvailable(IpamError):
    status_code = 409
    code = "pool_exhausted"


def _label(item: dict) -> str:
    name = item.get("name")
    cidr = item.get("cidr")
    return f"{name} ({cidr})" if name else str(cidr)

"""CIDR parsing and validation for IPv4 subnets.

``validate`` is pure: it never touches the database. It either returns a
normalized :class:`NetworkRange` or raises one of the validation errors from
``app.services.network.errors``.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass

from app.config import settings
from app.services.network.errors import (
    FormatError,
    InvalidAlignmentError,
    IpamError,
    RangeError,
)

_CIDR_RE = re.compile(r"^([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})/([0-9]{1,2})$")
_ADDRESS_RE = re.compile(r"^([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})$")

ADDRESS_SPACE_BITS = 32
_ALL_ONES = (1 << ADDRESS_SPACE_BITS) - 1


@dataclass(frozen=True)
class NetworkRange:
    network: int
    prefix: int
    id: object = None
    name: str | None = None

    @property
    def host_bits(self) -> int:
        return ADDRESS_SPACE_BITS - self.prefix

    @property
    def total(self) -> int:
        return 1 << self.host_bits

    @property
    def first_address(self) -> int:
        return self.network

    @property
    def last_address(self) -> int:
        return self.network + self.total - 1

    @property
    def broadcast(self) -> int:
        return self.last_address

    @property
    def usable_first(self) -> int:
        return self.network + 1

    @property
    def usable_last(self) -> int:
        return self.broadcast - 1

    @property
    def netmask(self) -> str:
        return int_to_ip(prefix_mask(self.prefix))

    @property
    def network_address(self) -> str:
        return int_to_ip(self.network)

    @property
    def cidr(self) -> str:
        return f"{self.network_address}/{self.prefix}"

    def contains(self, address: int) -> bool:
        return self.first_address <= address <= self.last_address

    def as_dict(self) -> dict:
        return {
            "cidr": self.cidr,
            "network_address": self.network_address,
            "prefix_length": self.prefix,
            "netmask": self.netmask,
            "broadcast_address": int_to_ip(self.broadcast),
            "usable_first": int_to_ip(self.usable_first),
            "usable_last": int_to_ip(self.usable_last),
            "total_addresses": self.total,
        }


def prefix_mask(prefix: int) -> int:
    return (_ALL_ONES << (ADDRESS_SPACE_BITS - prefix)) & _ALL_ONES


def ip_to_int(address: str) -> int:
    return int(ipaddress.IPv4Address(address))


def int_to_ip(value: int) -> str:
    return str(ipaddress.IPv4Address(value))


def parse_address(address: str, label: str = "IP address") -> int:
    """Parse a dotted-quad address with the same rules the CIDR parser applies."""
    text = (address or "").strip()
    match = _ADDRESS_RE.match(text)
    if not match:
        raise FormatError(f"{label} must be a dotted-quad IPv4 address, e.g. 192.168.1.1")
    octets = [int(part) for part in match.groups()]
    if any(octet > 255 for octet in octets):
        raise RangeError(f"{label} octets must be between 0 and 255")
    return (octets[0] << 24) | (octets[1] << 16) | (octets[2] << 8) | octets[3]


def validate(
    cidr: str,
    *,
    min_prefix: int | None = None,
    max_prefix: int | None = None,
) -> NetworkRange:
    """Validate ``a.b.c.d/n`` and return the network it denotes.

    Raises:
        FormatError: the string is not four octets and a prefix.
        RangeError: an octet is above 255 or the prefix is outside the policy band.
        InvalidAlignmentError: host bits are set; ``suggested_cidr`` holds the fix.
    """
    lower = settings.ipam_min_prefix if min_prefix is None else min_prefix
    upper = settings.ipam_max_prefix if max_prefix is None else max_prefix

    text = (cidr or "").strip()
    match = _CIDR_RE.match(text)
    if not match:
        raise FormatError("Invalid CIDR format. Use format: 192.168.1.0/24")

    *raw_octets, raw_prefix = match.groups()
    octets = [int(part) for part in raw_octets]
    prefix = int(raw_prefix)

    if any(octet > 255 for octet in octets):
        raise RangeError("IP address octets must be between 0 and 255")
    if not lower <= prefix <= upper:
        raise RangeError(f"Prefix must be between /{lower} and /{upper}")

    address = (octets[0] << 24) | (octets[1] << 16) | (octets[2] << 8) | octets[3]
    network = address & prefix_mask(prefix)
    if network != address:
        suggested = f"{int_to_ip(network)}/{prefix}"
        raise InvalidAlignmentError(
            f"Invalid network address for /{prefix} subnet. Did you mean {suggested}?",
            suggested_cidr=suggested,
        )
    return NetworkRange(network=network, prefix=prefix)


def check(cidr: str) -> dict:
    """Non-raising wrapper used by the interactive validation endpoint."""
    try:
        network = validate(cidr)
    except InvalidAlignmentError as exc:
        return {
            "is_valid": False,
            "code": exc.code,
            "error": exc.message,
            "suggested_cidr": exc.suggested_cidr,
            "network": None,
        }
    except IpamError as exc:
        return {
            "is_valid": False,
            "code": exc.code,
            "error": exc.message,
            "suggested_cidr": None,
            "network": None,
        }
    return {
        "is_valid": True,
        "code": None,
        "error": None,
        "suggested_cidr": None,
        "network": network.as_dict(),
    }


def classify(network: NetworkRange) -> str:
    """Best-guess subnet type for a network when the caller did not pick one."""
    parsed = ipaddress.IPv4Network(network.cidr)
    if parsed.subnet_of(ipaddress.IPv4Network("100.64.0.0/10")):
        return "cgnat"
    if parsed.is_private:
        return "private"
    return "public"

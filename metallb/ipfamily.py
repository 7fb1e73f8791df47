"""Address family detection for IP addresses and prefixes."""

from __future__ import annotations

import ipaddress
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class Family(str, Enum):
    """Single-stack IPv4/IPv6, or dual-stack."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"
    DUAL_STACK = "dual"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


def _parse(text: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def _is_v4(ip: Optional[IPAddress]) -> bool:
    if ip is None:
        return False
    if ip.version == 4:
        return True
    return ip.ipv4_mapped is not None


def for_addresses(ips: Sequence[str]) -> Family:
    """Return the family of a list of address strings; raise ValueError if invalid."""
    if len(ips) == 1:
        return Family.IPV4 if _is_v4(_parse(ips[0])) else Family.IPV6
    if len(ips) == 2:
        ip1, ip2 = _parse(ips[0]), _parse(ips[1])
        if ip1 is None or ip2 is None:
            raise ValueError(f"IPFamilyForAddresses: Invalid address {list(ips)!r}")
        if _is_v4(ip1) == _is_v4(ip2):
            raise ValueError(f"IPFamilyForAddresses: same address family {list(ips)!r}")
        return Family.DUAL_STACK
    raise ValueError(f"IPFamilyForAddresses: invalid ips length {len(ips)} {list(ips)!r}")


def for_addresses_ips(ips: Iterable[Optional[IPAddress]]) -> Family:
    """Return the family of a list of address objects (None counts as invalid)."""
    return for_addresses([str(ip) if ip is not None else "" for ip in ips])


def for_cidr(cidr: IPNetwork) -> Family:
    """Return the family of a prefix."""
    return Family.IPV4 if _is_v4(cidr.network_address) else Family.IPV6


def for_address(ip: IPAddress) -> Family:
    """Return the family of an address."""
    return Family.IPV4 if _is_v4(ip) else Family.IPV6
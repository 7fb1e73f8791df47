"""BGP advertisements and the session interfaces that carry them."""

from __future__ import annotations

import ipaddress
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass
class Advertisement:
    """One network path and its BGP attributes."""

    prefix: Any
    next_hop: Optional[IPAddress] = None
    local_pref: int = 0
    communities: list[int] = field(default_factory=list)

    def equal(self, other: "Advertisement") -> bool:
        """Return True if both advertisements describe the same path."""
        if str(self.prefix) != str(other.prefix):
            return False
        if self.next_hop != other.next_hop:
            return False
        if self.local_pref != other.local_pref:
            return False
        return list(self.communities) == list(other.communities)


class Session(ABC):
    """A BGP session to one peer."""

    @abstractmethod
    def set(self, *args: Advertisement) -> None:
        """Replace the set of advertisements sent to the peer."""

    @abstractmethod
    def close(self) -> None:
        """Shut the session down."""

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class SessionManager(ABC):
    """Creates BGP sessions and manages shared state such as BFD profiles."""

    @abstractmethod
    def new_session(
        self,
        logger: Any,
        addr: str,
        src_addr: Optional[IPAddress],
        my_asn: int,
        router_id: Optional[IPAddress],
        asn: int,
        hold_time: timedelta,
        keepalive_time: timedelta,
        password: str,
        my_node: str,
        bfd_profile: str,
    ) -> Session:
        """Create a session to the peer at addr."""

    @abstractmethod
    def sync_bfd_profiles(self, profiles: Mapping[str, Any]) -> None:
        """Replace the set of known BFD profiles."""
"""Parsing of JSON output from the routing daemon's shell."""

from __future__ import annotations

import ipaddress
import json
from dataclasses import dataclass, field
from typing import Any, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

BGP_CONNECTED = "Established"


class ParseError(ValueError):
    """Raised when shell output cannot be parsed."""


@dataclass
class Neighbor:
    ip: IPAddress
    connected: bool
    local_as: str
    remote_as: str
    updates_sent: int
    prefix_sent: int
    port: int


@dataclass
class Route:
    destination: IPNetwork
    next_hops: list[IPAddress] = field(default_factory=list)


@dataclass
class BFDPeer:
    multihop: bool = False
    peer: str = ""
    local: str = ""
    vrf: str = ""
    interface: str = ""
    id: int = 0
    remote_id: int = 0
    passive_mode: bool = False
    status: str = ""
    uptime: int = 0
    diagnostic: str = ""
    remote_diagnostic: str = ""
    receive_interval: int = 0
    transmit_interval: int = 0
    echo_receive_interval: int = 0
    echo_transmit_interval: int = 0
    detect_multiplier: int = 0
    remote_receive_interval: int = 0
    remote_transmit_interval: int = 0
    remote_echo_interval: int = 0
    remote_detect_multiplier: int = 0


_BFD_FIELDS = {
    "multihop": ("multihop", bool),
    "peer": ("peer", str),
    "local": ("local", str),
    "vrf": ("vrf", str),
    "interface": ("interface", str),
    "id": ("id", int),
    "remote-id": ("remote_id", int),
    "passive-mode": ("passive_mode", bool),
    "status": ("status", str),
    "uptime": ("uptime", int),
    "diagnostic": ("diagnostic", str),
    "remote-diagnostic": ("remote_diagnostic", str),
    "receive-interval": ("receive_interval", int),
    "transmit-interval": ("transmit_interval", int),
    "echo-receive-interval": ("echo_receive_interval", int),
    "echo-transmit-interval": ("echo_transmit_interval", int),
    "detect-multiplier": ("detect_multiplier", int),
    "remote-receive-interval": ("remote_receive_interval", int),
    "remote-transmit-interval": ("remote_transmit_interval", int),
    "remote-echo-interval": ("remote_echo_interval", int),
    "remote-detect-multiplier": ("remote_detect_multiplier", int),
}

_ZERO = {int: 0, str: "", bool: False}


def _load(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise ParseError(f"failed to parse vtysh response: {e}") from e


def _object(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ParseError(f"failed to parse vtysh response: {where} is not an object")
    return value


def _field(obj: dict, key: str, kind: type) -> Any:
    value = obj.get(key)
    if value is None:
        return _ZERO[kind]
    if kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    if not ok:
        raise ParseError(f"failed to parse vtysh response: {key} is not a {kind.__name__}")
    return value


def _parse_ip(text: str) -> IPAddress:
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        raise ParseError(f"failed to parse {text} as ip") from None


def _neighbor(key: str, raw: Any) -> Neighbor:
    ip = _parse_ip(key)
    n = _object(raw, key)
    stats = _object(n.get("messageStats"), "messageStats")
    families = _object(n.get("addressFamilyInfo"), "addressFamilyInfo")
    prefix_sent = sum(
        _field(_object(info, name), "sentPrefixCounter", int) for name, info in families.items()
    )
    return Neighbor(
        ip=ip,
        connected=_field(n, "bgpState", str) == BGP_CONNECTED,
        local_as=str(_field(n, "localAs", int)),
        remote_as=str(_field(n, "remoteAs", int)),
        updates_sent=_field(stats, "updatesSent", int),
        prefix_sent=prefix_sent,
        port=_field(n, "portForeign", int),
    )


def parse_neighbour(text: str) -> Neighbor:
    """Parse the output of 'show bgp neighbor <ip>' for exactly one peer."""
    doc = _object(_load(text), "response")
    if len(doc) > 1:
        raise ParseError("more than one peer were returned")
    if not doc:
        raise ParseError("no peers were returned")
    (key, raw), = doc.items()
    return _neighbor(key, raw)


def parse_neighbours(text: str) -> list[Neighbor]:
    """Parse the output of 'show bgp neighbor' for all peers."""
    doc = _object(_load(text), "response")
    return [_neighbor(key, raw) for key, raw in doc.items()]


def parse_routes(text: str) -> dict[str, Route]:
    """Parse a routing table dump, keyed by destination address."""
    doc = _object(_load(text), "response")
    routes = _object(doc.get("routes"), "routes")
    result: dict[str, Route] = {}
    for key, frr_routes in routes.items():
        if "/" not in key:
            raise ParseError(f"failed to parse cidr for {key}")
        try:
            iface = ipaddress.ip_interface(key)
        except ValueError as e:
            raise ParseError(f"failed to parse cidr for {key}: {e}") from e
        route = Route(destination=iface.network)
        if frr_routes is None:
            frr_routes = []
        if not isinstance(frr_routes, list):
            raise ParseError(f"failed to parse vtysh response: routes for {key} is not a list")
        for entry in frr_routes:
            nexthops = _object(entry, key).get("nexthops") or []
            if not isinstance(nexthops, list):
                raise ParseError("failed to parse vtysh response: nexthops is not a list")
            for hop in nexthops:
                hop = _object(hop, "nexthop")
                ip_text = _field(hop, "ip", str)
                try:
                    ip = ipaddress.ip_address(ip_text)
                except ValueError:
                    raise ParseError(f"failed to parse ip {ip_text}") from None
                if ip.version == 6 and _field(hop, "scope", str) == "link-local":
                    continue
                route.next_hops.append(ip)
        result[str(iface.ip)] = route
    return result


def parse_bfd_peers(text: str) -> dict[str, BFDPeer]:
    """Parse 'show bfd peers' output, keyed by peer address."""
    doc = _load(text)
    if doc is None:
        doc = []
    if not isinstance(doc, list):
        raise ParseError("failed to parse vtysh response: expected a list")
    result: dict[str, BFDPeer] = {}
    for raw in doc:
        obj = _object(raw, "peer")
        peer = BFDPeer(**{attr: _field(obj, key, kind) for key, (attr, kind) in _BFD_FIELDS.items()})
        result[peer.peer] = peer
    return result
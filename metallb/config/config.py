"""Parsing and validation of the load balancer configuration."""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Optional, Union

import yaml

from metallb.config.selector import Selector, SelectorError, everything, from_label_selector

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class ConfigError(ValueError):
    """Raised when the configuration cannot be parsed or is invalid."""


class Proto(str, Enum):
    BGP = "bgp"
    LAYER2 = "layer2"

    def __str__(self) -> str:
        return self.value


# --- YAML loading -----------------------------------------------------------

_INT = "tag:yaml.org,2002:int"
_FLOAT = "tag:yaml.org,2002:float"


class _Loader(yaml.SafeLoader):
    """Safe loader without YAML 1.1 base-60 numbers."""


_Loader.yaml_implicit_resolvers = {
    k: [r for r in v if r[0] not in (_INT, _FLOAT)]
    for k, v in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_Loader.add_implicit_resolver(
    _INT,
    re.compile(r"^(?:[-+]?0b[01_]+|[-+]?0x[0-9a-fA-F_]+|[-+]?0[0-7_]+|[-+]?[1-9][0-9_]*|[-+]?0)$"),
    list("-+0123456789"),
)
_Loader.add_implicit_resolver(
    _FLOAT,
    re.compile(
        r"^(?:[-+]?(?:[0-9][0-9_]*)\.[0-9_]*(?:[eE][-+][0-9]+)?"
        r"|\.[0-9_]+(?:[eE][-+][0-9]+)?"
        r"|[-+]?\.(?:inf|Inf|INF)|\.(?:nan|NaN|NAN))$"
    ),
    list("-+0123456789."),
)


class _ShapeError(Exception):
    pass


def _mapping(node: Any, where: str, allowed: set[str]) -> dict:
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise _ShapeError(f"{where}: expected a mapping, got {type(node).__name__}")
    for key in node:
        if key not in allowed:
            raise _ShapeError(f"field {key} not found in {where}")
    return node


def _as_str(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise _ShapeError(f"{where}: cannot unmarshal {type(value).__name__} into string")


def _as_uint(value: Any, where: str, bits: int) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < (1 << bits):
        raise _ShapeError(f"{where}: cannot unmarshal {value!r} into uint{bits}")
    return value


def _as_opt_int(value: Any, where: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise _ShapeError(f"{where}: cannot unmarshal {value!r} into int")
    return value


def _as_opt_uint32(value: Any, where: str) -> Optional[int]:
    if value is None:
        return None
    return _as_uint(value, where, 32)


def _as_bool(value: Any, where: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise _ShapeError(f"{where}: cannot unmarshal {value!r} into bool")
    return value


def _as_opt_bool(value: Any, where: str) -> Optional[bool]:
    return None if value is None else _as_bool(value, where)


def _as_list(value: Any, where: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _ShapeError(f"{where}: expected a sequence, got {type(value).__name__}")
    return value


def _as_str_map(value: Any, where: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _ShapeError(f"{where}: expected a mapping, got {type(value).__name__}")
    return {_as_str(k, where): _as_str(v, f"{where}.{k}") for k, v in value.items()}


# --- Raw configuration -------------------------------------------------------


@dataclass
class RawSelectorRequirement:
    key: str = ""
    operator: str = ""
    values: list[str] = field(default_factory=list)

    @classmethod
    def _from_node(cls, node: Any, where: str) -> "RawSelectorRequirement":
        m = _mapping(node, where, {"key", "operator", "values"})
        return cls(
            key=_as_str(m.get("key"), f"{where}.key"),
            operator=_as_str(m.get("operator"), f"{where}.operator"),
            values=[_as_str(v, f"{where}.values") for v in _as_list(m.get("values"), where)],
        )


@dataclass
class RawNodeSelector:
    match_labels: dict[str, str] = field(default_factory=dict)
    match_expressions: list[RawSelectorRequirement] = field(default_factory=list)

    @classmethod
    def _from_node(cls, node: Any, where: str) -> "RawNodeSelector":
        m = _mapping(node, where, {"match-labels", "match-expressions"})
        return cls(
            match_labels=_as_str_map(m.get("match-labels"), f"{where}.match-labels"),
            match_expressions=[
                RawSelectorRequirement._from_node(e, f"{where}.match-expressions")
                for e in _as_list(m.get("match-expressions"), where)
            ],
        )


@dataclass
class RawPeer:
    my_asn: int = 0
    asn: int = 0
    addr: str = ""
    src_addr: str = ""
    port: int = 0
    hold_time: str = ""
    keepalive_time: str = ""
    router_id: str = ""
    node_selectors: list[RawNodeSelector] = field(default_factory=list)
    password: str = ""
    bfd_profile: str = ""

    _KEYS = {
        "my-asn", "peer-asn", "peer-address", "source-address", "peer-port", "hold-time",
        "keepalive-time", "router-id", "node-selectors", "password", "bfd-profile",
    }

    @classmethod
    def _from_node(cls, node: Any, where: str) -> "RawPeer":
        m = _mapping(node, where, cls._KEYS)
        return cls(
            my_asn=_as_uint(m.get("my-asn"), "my-asn", 32),
            asn=_as_uint(m.get("peer-asn"), "peer-asn", 32),
            addr=_as_str(m.get("peer-address"), "peer-address"),
            src_addr=_as_str(m.get("source-address"), "source-address"),
            port=_as_uint(m.get("peer-port"), "peer-port", 16),
            hold_time=_as_str(m.get("hold-time"), "hold-time"),
            keepalive_time=_as_str(m.get("keepalive-time"), "keepalive-time"),
            router_id=_as_str(m.get("router-id"), "router-id"),
            node_selectors=[
                RawNodeSelector._from_node(n, "node-selectors")
                for n in _as_list(m.get("node-selectors"), "node-selectors")
            ],
            password=_as_str(m.get("password"), "password"),
            bfd_profile=_as_str(m.get("bfd-profile"), "bfd-profile"),
        )


@dataclass
class RawBGPAdvertisement:
    aggregation_length: Optional[int] = None
    aggregation_length_v6: Optional[int] = None
    local_pref: Optional[int] = None
    communities: list[str] = field(default_factory=list)

    @classmethod
    def _from_node(cls, node: Any, where: str) -> "RawBGPAdvertisement":
        m = _mapping(
            node, where,
            {"aggregation-length", "aggregation-length-v6", "localpref", "communities"},
        )
        return cls(
            aggregation_length=_as_opt_int(m.get("aggregation-length"), "aggregation-length"),
            aggregation_length_v6=_as_opt_int(
                m.get("aggregation-length-v6"), "aggregation-length-v6"
            ),
            local_pref=_as_opt_uint32(m.get("localpref"), "localpref"),
            communities=[
                _as_str(c, "communities") for c in _as_list(m.get("communities"), "communities")
            ],
        )


@dataclass
class RawAddressPool:
    protocol: str = ""
    name: str = ""
    addresses: list[str] = field(default_factory=list)
    avoid_buggy_ips: bool = False
    auto_assign: Optional[bool] = None
    bgp_advertisements: list[RawBGPAdvertisement] = field(default_factory=list)

    @classmethod
    def _from_node(cls, node: Any, where: str) -> "RawAddressPool":
        m = _mapping(
            node, where,
            {"protocol", "name", "addresses", "avoid-buggy-ips", "auto-assign",
             "bgp-advertisements"},
        )
        return cls(
            protocol=_as_str(m.get("protocol"), "protocol"),
            name=_as_str(m.get("name"), "name"),
            addresses=[_as_str(a, "addresses") for a in _as_list(m.get("addresses"), "addresses")],
            avoid_buggy_ips=_as_bool(m.get("avoid-buggy-ips"), "avoid-buggy-ips"),
            auto_assign=_as_opt_bool(m.get("auto-assign"), "auto-assign"),
            bgp_advertisements=[
                RawBGPAdvertisement._from_node(a, "bgp-advertisements")
                for a in _as_list(m.get("bgp-advertisements"), "bgp-advertisements")
            ],
        )


@dataclass
class RawBFDProfile:
    name: str = ""
    receive_interval: Optional[int] = None
    transmit_interval: Optional[int] = None
    detect_multiplier: Optional[int] = None
    echo_interval: Optional[int] = None
    echo_mode: bool = False
    passive_mode: bool = False
    minimum_ttl: Optional[int] = None

    @classmethod
    def _from_node(cls, node: Any, where: str) -> "RawBFDProfile":
        m = _mapping(
            node, where,
            {"name", "receive-interval", "transmit-interval", "detect-multiplier",
             "echo-interval", "echo-mode", "passive-mode", "minimum-ttl"},
        )
        return cls(
            name=_as_str(m.get("name"), "name"),
            receive_interval=_as_opt_uint32(m.get("receive-interval"), "receive-interval"),
            transmit_interval=_as_opt_uint32(m.get("transmit-interval"), "transmit-interval"),
            detect_multiplier=_as_opt_uint32(m.get("detect-multiplier"), "detect-multiplier"),
            echo_interval=_as_opt_uint32(m.get("echo-interval"), "echo-interval"),
            echo_mode=_as_bool(m.get("echo-mode"), "echo-mode"),
            passive_mode=_as_bool(m.get("passive-mode"), "passive-mode"),
            minimum_ttl=_as_opt_uint32(m.get("minimum-ttl"), "minimum-ttl"),
        )


@dataclass
class RawConfig:
    """The configuration as written, before validation."""

    peers: list[RawPeer] = field(default_factory=list)
    bgp_communities: dict[str, str] = field(default_factory=dict)
    pools: list[RawAddressPool] = field(default_factory=list)
    bfd_profiles: list[RawBFDProfile] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, data: Union[str, bytes]) -> "RawConfig":
        """Decode YAML strictly: unknown fields and wrong types are errors."""
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            doc = yaml.load(data, Loader=_Loader)
            m = _mapping(doc, "config", {"peers", "bgp-communities", "address-pools",
                                         "bfd-profiles"})
            return cls(
                peers=[RawPeer._from_node(p, "peer") for p in _as_list(m.get("peers"), "peers")],
                bgp_communities=_as_str_map(m.get("bgp-communities"), "bgp-communities"),
                pools=[
                    RawAddressPool._from_node(p, "address-pool")
                    for p in _as_list(m.get("address-pools"), "address-pools")
                ],
                bfd_profiles=[
                    RawBFDProfile._from_node(p, "bfd-profile")
                    for p in _as_list(m.get("bfd-profiles"), "bfd-profiles")
                ],
            )
        except (yaml.YAMLError, _ShapeError) as e:
            raise ConfigError(f"could not parse config: {e}") from e


# --- Parsed configuration ----------------------------------------------------


@dataclass
class Peer:
    """Configuration of a BGP peering session."""

    my_asn: int
    asn: int
    addr: IPAddress
    src_addr: Optional[IPAddress] = None
    port: int = 179
    hold_time: timedelta = timedelta(seconds=90)
    keepalive_time: timedelta = timedelta(seconds=30)
    router_id: Optional[IPAddress] = None
    node_selectors: list[Selector] = field(default_factory=lambda: [everything()])
    password: str = ""
    bfd_profile: str = ""


@dataclass
class BGPAdvertisement:
    """How an allocated IP is turned into a BGP advertisement."""

    aggregation_length: int = 32
    aggregation_length_v6: int = 128
    local_pref: int = 0
    communities: set[int] = field(default_factory=set)


@dataclass
class Pool:
    """An IP address pool."""

    protocol: Proto
    cidr: list[IPNetwork] = field(default_factory=list)
    avoid_buggy_ips: bool = False
    auto_assign: bool = True
    bgp_advertisements: list[BGPAdvertisement] = field(default_factory=list)


@dataclass
class BFDProfile:
    """A BFD profile applicable to peers."""

    name: str
    receive_interval: Optional[int] = None
    transmit_interval: Optional[int] = None
    detect_multiplier: Optional[int] = None
    echo_interval: Optional[int] = None
    echo_mode: bool = False
    passive_mode: bool = False
    minimum_ttl: Optional[int] = None


@dataclass
class Config:
    """A parsed and validated configuration."""

    peers: list[Peer] = field(default_factory=list)
    pools: dict[str, Pool] = field(default_factory=dict)
    bfd_profiles: dict[str, BFDProfile] = field(default_factory=dict)


# --- Helpers -----------------------------------------------------------------

_DURATION_UNITS = {
    "ns": 1e-9, "us": 1e-6, "µs": 1e-6, "μs": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0,
}
_DURATION_RE = re.compile(r"([0-9]*(?:\.[0-9]*)?)(ns|us|µs|μs|ms|s|m|h)")


def _parse_duration(text: str) -> float:
    """Parse a duration such as '1m30s' into seconds."""
    s = text
    sign = 1.0
    if s[:1] in ("+", "-"):
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    if s == "0":
        return 0.0
    if not s:
        raise ValueError(f'time: invalid duration "{text}"')
    total = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_RE.match(s, pos)
        if not m or m.group(1) in ("", "."):
            raise ValueError(f'time: invalid duration "{text}"')
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    return sign * total


def _parse_ip(text: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(text.strip() if text != text.strip() else text)
    except ValueError:
        return None


def parse_hold_time(ht: str) -> timedelta:
    """Parse a hold time; empty means 90s; must be 0 or at least 3s."""
    if ht == "":
        return timedelta(seconds=90)
    try:
        seconds = _parse_duration(ht)
    except ValueError as e:
        raise ConfigError(f'invalid hold time "{ht}": {e}') from e
    rounded = int(seconds)
    if rounded != 0 and rounded < 3:
        raise ConfigError(f'invalid hold time "{ht}": must be 0 or >=3s')
    return timedelta(seconds=rounded)


def parse_keepalive_time(hold_time: timedelta, ka: str) -> timedelta:
    """Parse a keepalive time; empty means a third of the hold time."""
    if ka == "":
        return hold_time / 3
    try:
        seconds = _parse_duration(ka)
    except ValueError as e:
        raise ConfigError(f'invalid keepalive time "{ka}": {e}') from e
    return timedelta(seconds=int(seconds))


_UINT16_RE = re.compile(r"^[0-9]+$")


def parse_community(c: str) -> int:
    """Parse 'asn:value' into a 32-bit community."""
    fs = c.split(":")
    if len(fs) != 2:
        raise ConfigError(f'invalid community string "{c}"')
    parts = []
    for which, text in (("first", fs[0]), ("second", fs[1])):
        if not _UINT16_RE.match(text) or int(text) > 0xFFFF:
            raise ConfigError(f'invalid {which} section of community "{text}"')
        parts.append(int(text))
    return (parts[0] << 16) + parts[1]


def community_to_string(c: int) -> str:
    """Format a 32-bit community as 'asn:value'."""
    return f"{c >> 16}:{c & 0xFFFF}"


def parse_cidr(cidr: str) -> list[IPNetwork]:
    """Parse a CIDR prefix or an 'start - end' range into prefixes."""
    if "-" not in cidr:
        addr, sep, plen = cidr.partition("/")
        if not sep or not _UINT16_RE.match(plen):
            raise ConfigError(f'invalid CIDR "{cidr}"')
        try:
            return [ipaddress.ip_network(cidr, strict=False)]
        except ValueError as e:
            raise ConfigError(f'invalid CIDR "{cidr}"') from e

    first, last = cidr.split("-", 1)
    start = _parse_ip(first.strip())
    if start is None:
        raise ConfigError(f'invalid IP range "{cidr}": invalid start IP "{first}"')
    end = _parse_ip(last.strip())
    if end is None:
        raise ConfigError(f'invalid IP range "{cidr}": invalid end IP "{last}"')
    if start.version != end.version:
        raise ConfigError(f'invalid IP range "{cidr}": mixed address families')
    if start > end:
        raise ConfigError(
            f'invalid IP range "{cidr}": start IP "{start}" is after the end IP "{end}"'
        )
    return list(ipaddress.summarize_address_range(start, end))


def cidrs_overlap(a: IPNetwork, b: IPNetwork) -> bool:
    """Return True if either prefix contains the other."""
    return a.version == b.version and a.overlaps(b)


def _bfd_int(value: Optional[int], lo: int, hi: int, what: str) -> Optional[int]:
    if value is None:
        return None
    if value < lo or value > hi:
        raise ConfigError(f"{what}: invalid value {value}, must be in {lo}-{hi} range")
    return value


def _parse_bfd_profile(p: RawBFDProfile) -> BFDProfile:
    if not p.name:
        raise ConfigError("missing bfd profile name")
    return BFDProfile(
        name=p.name,
        detect_multiplier=_bfd_int(p.detect_multiplier, 2, 255, "invalid detect multiplier value"),
        receive_interval=_bfd_int(p.receive_interval, 10, 60000, "invalid receive interval value"),
        transmit_interval=_bfd_int(
            p.transmit_interval, 10, 60000, "invalid transmit interval value"
        ),
        minimum_ttl=_bfd_int(p.minimum_ttl, 1, 254, "invalid minimum ttl value"),
        echo_interval=_bfd_int(p.echo_interval, 10, 60000, "invalid echo interval value"),
        echo_mode=p.echo_mode,
        passive_mode=p.passive_mode,
    )


def _parse_peer(p: RawPeer) -> Peer:
    if p.my_asn == 0:
        raise ConfigError("missing local ASN")
    if p.asn == 0:
        raise ConfigError("missing peer ASN")
    ip = _parse_ip(p.addr)
    if ip is None:
        raise ConfigError(f'invalid peer IP "{p.addr}"')
    hold_time = parse_hold_time(p.hold_time)
    keepalive_time = parse_keepalive_time(hold_time, p.keepalive_time)
    if keepalive_time > hold_time:
        raise ConfigError(f'invalid keepaliveTime "{p.keepalive_time}"')
    router_id = None
    if p.router_id:
        router_id = _parse_ip(p.router_id)
        if router_id is None:
            raise ConfigError(f'invalid router ID "{p.router_id}"')
    src = _parse_ip(p.src_addr) if p.src_addr else None
    if p.src_addr and src is None:
        raise ConfigError(f'invalid source IP "{p.src_addr}"')

    if not p.node_selectors:
        selectors = [everything()]
    else:
        selectors = []
        for ns in p.node_selectors:
            try:
                selectors.append(
                    from_label_selector(
                        ns.match_labels,
                        [(r.key, r.operator, r.values) for r in ns.match_expressions],
                    )
                )
            except SelectorError as e:
                raise ConfigError(f"parsing node selector: {e}") from e

    return Peer(
        my_asn=p.my_asn,
        asn=p.asn,
        addr=ip,
        src_addr=src,
        port=p.port or 179,
        hold_time=hold_time,
        keepalive_time=keepalive_time,
        router_id=router_id,
        node_selectors=selectors,
        password=p.password,
        bfd_profile=p.bfd_profile,
    )


def _parse_bgp_advertisements(
    ads: list[RawBGPAdvertisement], cidrs: list[IPNetwork], communities: dict[str, int]
) -> list[BGPAdvertisement]:
    if not ads:
        return [BGPAdvertisement()]
    result = []
    for raw in ads:
        ad = BGPAdvertisement()
        if raw.aggregation_length is not None:
            ad.aggregation_length = raw.aggregation_length
        if ad.aggregation_length > 32:
            raise ConfigError(f"invalid aggregation length {ad.aggregation_length} for IPv4")
        if raw.aggregation_length_v6 is not None:
            ad.aggregation_length_v6 = raw.aggregation_length_v6
            if ad.aggregation_length_v6 > 128:
                raise ConfigError(
                    f"invalid aggregation length {ad.aggregation_length_v6} for IPv6"
                )
        for cidr in cidrs:
            max_length = ad.aggregation_length if cidr.version == 4 else ad.aggregation_length_v6
            if max_length < cidr.prefixlen:
                raise ConfigError(
                    f'invalid aggregation length {ad.aggregation_length}: prefix "{cidr}" in '
                    "this pool is more specific than the aggregation length"
                )
        if raw.local_pref is not None:
            ad.local_pref = raw.local_pref
        for c in raw.communities:
            if c in communities:
                ad.communities.add(communities[c])
            else:
                try:
                    ad.communities.add(parse_community(c))
                except ConfigError as e:
                    raise ConfigError(
                        f'invalid community "{c}" in BGP advertisement: {e}'
                    ) from e
        result.append(ad)
    return result


def _parse_address_pool(p: RawAddressPool, communities: dict[str, int]) -> Pool:
    if not p.name:
        raise ConfigError("missing pool name")
    if not p.addresses:
        raise ConfigError("pool has no prefixes defined")
    cidrs: list[IPNetwork] = []
    for cidr in p.addresses:
        try:
            cidrs.extend(parse_cidr(cidr))
        except ConfigError as e:
            raise ConfigError(f'invalid CIDR "{cidr}" in pool "{p.name}": {e}') from e

    if p.protocol == "":
        raise ConfigError("address pool is missing the protocol field")
    try:
        protocol = Proto(p.protocol)
    except ValueError:
        raise ConfigError(f'unknown protocol "{p.protocol}"') from None

    pool = Pool(
        protocol=protocol,
        cidr=cidrs,
        avoid_buggy_ips=p.avoid_buggy_ips,
        auto_assign=True if p.auto_assign is None else p.auto_assign,
    )
    if protocol == Proto.LAYER2:
        if p.bgp_advertisements:
            raise ConfigError(
                "cannot have bgp-advertisements configuration element in a layer2 address pool"
            )
    else:
        try:
            pool.bgp_advertisements = _parse_bgp_advertisements(
                p.bgp_advertisements, cidrs, communities
            )
        except ConfigError as e:
            raise ConfigError(f"parsing BGP communities: {e}") from e
    return pool


def parse(data: Union[str, bytes], validate: Optional[Callable[[RawConfig], Any]] = None) -> Config:
    """Load and validate a configuration; raise ConfigError on any problem."""
    raw = RawConfig.from_yaml(data)
    if validate is not None:
        validate(raw)

    cfg = Config()
    for i, bfd in enumerate(raw.bfd_profiles, 1):
        try:
            profile = _parse_bfd_profile(bfd)
        except ConfigError as e:
            raise ConfigError(f"parsing bfd profile #{i}: {e}") from e
        if profile.name in cfg.bfd_profiles:
            raise ConfigError(f"found duplicate bfd profile name {profile.name}")
        cfg.bfd_profiles[profile.name] = profile

    for i, p in enumerate(raw.peers, 1):
        try:
            peer = _parse_peer(p)
        except ConfigError as e:
            raise ConfigError(f"parsing peer #{i}: {e}") from e
        if peer.bfd_profile and peer.bfd_profile not in cfg.bfd_profiles:
            raise ConfigError(
                f"peer #{i} referencing non existing bfd profile {peer.bfd_profile}"
            )
        if peer in cfg.peers:
            raise ConfigError(f"peer #{i} already exists")
        cfg.peers.append(peer)

    communities: dict[str, int] = {}
    for name, value in raw.bgp_communities.items():
        try:
            communities[name] = parse_community(value)
        except ConfigError as e:
            raise ConfigError(f'parsing community "{name}": {e}') from e

    all_cidrs: list[IPNetwork] = []
    for i, p in enumerate(raw.pools, 1):
        try:
            pool = _parse_address_pool(p, communities)
        except ConfigError as e:
            raise ConfigError(f"parsing address pool #{i}: {e}") from e
        if p.name in cfg.pools:
            raise ConfigError(f'duplicate definition of pool "{p.name}"')
        for cidr in pool.cidr:
            for other in all_cidrs:
                if cidrs_overlap(cidr, other):
                    raise ConfigError(
                        f'CIDR "{cidr}" in pool "{p.name}" overlaps with already '
                        f'defined CIDR "{other}"'
                    )
            all_cidrs.append(cidr)
        cfg.pools[p.name] = pool

    return cfg
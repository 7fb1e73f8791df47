from datetime import timedelta
from ipaddress import ip_address, ip_network

import pytest

from metallb.config.config import (
    BFDProfile,
    BGPAdvertisement,
    Config,
    ConfigError,
    Peer,
    Pool,
    Proto,
    RawConfig,
    cidrs_overlap,
    community_to_string,
    parse,
    parse_cidr,
    parse_community,
    parse_hold_time,
    parse_keepalive_time,
)
from metallb.config.selector import everything, from_label_selector


def _no_validate(raw):
    return None


ALL_FEATURES = """
peers:
- my-asn: 42
  peer-asn: 142
  peer-address: 1.2.3.4
  peer-port: 1179
  hold-time: 180s
  router-id: 10.20.30.40
  source-address: 10.20.30.40
- my-asn: 100
  peer-asn: 200
  peer-address: 2.3.4.5
  node-selectors:
  - match-labels:
      foo: bar
    match-expressions:
      - {key: bar, operator: In, values: [quux]}
bgp-communities:
  bar: 64512:1234
address-pools:
- name: pool1
  protocol: bgp
  addresses:
  - 10.20.0.0/16
  - 10.50.0.0/24
  avoid-buggy-ips: true
  auto-assign: false
  bgp-advertisements:
  - aggregation-length: 32
    localpref: 100
    communities: ["bar", "1234:2345"]
  - aggregation-length: 24
    aggregation-length-v6: 64
- name: pool2
  protocol: bgp
  addresses:
  - 30.0.0.0/8
- name: pool3
  protocol: layer2
  addresses:
  - 40.0.0.0/25
  - 40.0.0.150-40.0.0.200
  - 40.0.0.210 - 40.0.0.240
  - 40.0.0.250 - 40.0.0.250
- name: pool4
  protocol: layer2
  addresses:
  - 2001:db8::/64
"""


def _nets(*xs):
    return [ip_network(x) for x in xs]


def test_empty_config():
    assert parse("", _no_validate) == Config()


def test_all_features():
    got = parse(ALL_FEATURES, _no_validate)
    want = Config(
        peers=[
            Peer(
                my_asn=42, asn=142, addr=ip_address("1.2.3.4"),
                src_addr=ip_address("10.20.30.40"), port=1179,
                hold_time=timedelta(seconds=180), keepalive_time=timedelta(seconds=60),
                router_id=ip_address("10.20.30.40"), node_selectors=[everything()],
            ),
            Peer(
                my_asn=100, asn=200, addr=ip_address("2.3.4.5"), port=179,
                hold_time=timedelta(seconds=90), keepalive_time=timedelta(seconds=30),
                node_selectors=[from_label_selector({"foo": "bar"}, [("bar", "In", ["quux"])])],
            ),
        ],
        pools={
            "pool1": Pool(
                protocol=Proto.BGP,
                cidr=_nets("10.20.0.0/16", "10.50.0.0/24"),
                avoid_buggy_ips=True,
                auto_assign=False,
                bgp_advertisements=[
                    BGPAdvertisement(32, 128, 100, {0xFC0004D2, 0x04D20929}),
                    BGPAdvertisement(24, 64, 0, set()),
                ],
            ),
            "pool2": Pool(
                protocol=Proto.BGP, cidr=_nets("30.0.0.0/8"),
                bgp_advertisements=[BGPAdvertisement()],
            ),
            "pool3": Pool(
                protocol=Proto.LAYER2,
                cidr=_nets(
                    "40.0.0.0/25", "40.0.0.150/31", "40.0.0.152/29", "40.0.0.160/27",
                    "40.0.0.192/29", "40.0.0.200/32", "40.0.0.210/31", "40.0.0.212/30",
                    "40.0.0.216/29", "40.0.0.224/28", "40.0.0.240/32", "40.0.0.250/32",
                ),
            ),
            "pool4": Pool(protocol=Proto.LAYER2, cidr=_nets("2001:db8::/64")),
        },
    )
    assert got == want
    assert str(got.peers[1].node_selectors[0]) == "bar in (quux),foo=bar"


PEER_ONLY = Config(
    peers=[
        Peer(
            my_asn=42, asn=42, addr=ip_address("1.2.3.4"), port=179,
            hold_time=timedelta(seconds=90), keepalive_time=timedelta(seconds=30),
            node_selectors=[everything()],
        )
    ]
)


def test_peer_only():
    raw = "\npeers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n"
    assert parse(raw, _no_validate) == PEER_ONLY


SIMPLE_POOL = {
    "pool1": Pool(
        protocol=Proto.BGP, cidr=_nets("1.2.3.0/24"), bgp_advertisements=[BGPAdvertisement()]
    )
}


def test_simple_advertisement():
    raw = """
address-pools:
- name: pool1
  protocol: bgp
  addresses: ["1.2.3.0/24"]
  bgp-advertisements:
  -
"""
    assert parse(raw, _no_validate) == Config(pools=SIMPLE_POOL)


def test_default_bgp_settings():
    raw = """
address-pools:
- name: pool1
  addresses: ["1.2.3.0/24"]
  protocol: bgp
"""
    assert parse(raw, _no_validate) == Config(pools=SIMPLE_POOL)


def test_session_with_default_bfd_profile():
    raw = """
address-pools:
- name: pool1
  addresses: ["1.2.3.0/24"]
  protocol: bgp
bfd-profiles:
- name: default
peers:
- my-asn: 42
  peer-asn: 42
  peer-address: 1.2.3.4
  bfd-profile: default
"""
    got = parse(raw, _no_validate)
    assert got.pools == SIMPLE_POOL
    assert got.bfd_profiles == {"default": BFDProfile(name="default")}
    assert got.peers[0].bfd_profile == "default"
    assert got.peers[0].keepalive_time == timedelta(seconds=30)


def test_nondefault_bfd_profile():
    raw = """
address-pools:
- name: pool1
  addresses: ["1.2.3.0/24"]
  protocol: bgp
bfd-profiles:
- name: nondefault
  receive-interval: 50
  transmit-interval: 51
  detect-multiplier: 52
  echo-interval: 54
  echo-mode: true
  passive-mode: true
  minimum-ttl: 55
"""
    got = parse(raw, _no_validate)
    assert got.bfd_profiles == {
        "nondefault": BFDProfile(
            name="nondefault", receive_interval=50, transmit_interval=51,
            detect_multiplier=52, echo_interval=54, echo_mode=True,
            passive_mode=True, minimum_ttl=55,
        )
    }


BAD = [
    "foo:<>$@$2r24j90",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.400\n",
    "peers:\n- peer-asn: 42\n  peer-address: 1.2.3.4\n",
    "peers:\n- my-asn: 42\n  peer-address: 1.2.3.4\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n  hold-time: foo\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n  hold-time: 1s\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n"
    "  router-id: oh god how do I BGP\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n  node-selectors:\n"
    "  - match-labels:\n      foo:\n        bar: baz\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n  node-selectors:\n"
    "  - match-expressions:\n    - operator: In\n      values: [foo, bar]\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n  node-selectors:\n"
    "  - match-expressions:\n    - key: foo\n      values: [foo, bar]\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n  node-selectors:\n"
    "  - match-expressions:\n    - key: foo\n      operator: Surrounds\n      values: [foo, bar]\n",
    "peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n"
    "- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n",
    "address-pools:\n-\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n",
    "address-pools:\n- name: pool1\n",
    "address-pools:\n- name: pool1\n  protocol: babel\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  addresses:\n  - 100.200.300.400/24\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  addresses:\n  - 1.2.3.0/33\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  addresses:\n  - 1.2.3.10-1.2.3.1\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  bgp-advertisements:\n"
    "  - aggregation-length: 33\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  addresses:\n  - 10.20.30.40/24\n"
    "  - 1.2.3.0/28\n  bgp-advertisements:\n  - aggregation-length: 26\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  bgp-advertisements:\n"
    '  - communities: ["1234"]\n',
    "address-pools:\n- name: pool1\n  protocol: bgp\n  bgp-advertisements:\n"
    '  - communities: ["99999999:1"]\n',
    "address-pools:\n- name: pool1\n  protocol: bgp\n  bgp-advertisements:\n"
    '  - communities: ["1:99999999"]\n',
    "address-pools:\n- name: pool1\n  protocol: bgp\n  bgp-advertisements:\n"
    '  - communities: ["flarb"]\n',
    "bgp-communities:\n  flarb: 99999999:1\naddress-pools:\n- name: pool1\n  protocol: bgp\n"
    '  bgp-advertisements:\n  - communities: ["flarb"]\n',
    "bgp-communities:\n  flarb: 1:99999999\naddress-pools:\n- name: pool1\n  protocol: bgp\n"
    '  bgp-advertisements:\n  - communities: ["flarb"]\n',
    "address-pools:\n- name: pool1\n  protocol: bgp\n- name: pool1\n  protocol: bgp\n"
    "- name: pool2\n  protocol: bgp\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  addresses:\n  - 10.0.0.0/8\n"
    "- name: pool2\n  protocol: bgp\n  addresses:\n  - 10.0.0.0/8\n",
    "address-pools:\n- name: pool1\n  protocol: bgp\n  addresses:\n  - 10.0.0.0/8\n"
    "- name: pool2\n  protocol: bgp\n  addresses:\n  - 10.0.0.0/16\n",
    "address-pools:\n- name: pool1\n  protocol: layer2\n  addresses:\n  - 10.0.0.0/16\n"
    '  bgp-advertisements:\n  - communities: ["flarb"]\n',
    'address-pools:\n- name: pool1\n  addresses: ["1.2.3.0/24"]\n  protocol: bgp\n'
    "bfd-profiles:\n- name: default\npeers:\n- my-asn: 42\n  peer-asn: 42\n"
    "  peer-address: 1.2.3.4\n  bfd-profile: zzz\n",
    'address-pools:\n- name: pool1\n  addresses: ["1.2.3.0/24"]\n  protocol: bgp\n'
    "bfd-profiles:\n- name: default\n- name: foo\n- name: foo\n",
    "bfd-profiles:\n- name: default\n  receive-interval: 2\n",
    "bfd-profiles:\n- name: default\n  receive-interval: 90000\n",
]


@pytest.mark.parametrize("raw", BAD)
def test_invalid_configs(raw):
    with pytest.raises(ConfigError):
        parse(raw, _no_validate)


def test_validate_is_called():
    def reject(raw):
        raise ConfigError("rejected")

    with pytest.raises(ConfigError, match="rejected"):
        parse("peers:\n- my-asn: 42\n  peer-asn: 42\n  peer-address: 1.2.3.4\n", reject)


def test_raw_config_fields():
    raw = RawConfig.from_yaml(ALL_FEATURES)
    assert raw.peers[0].hold_time == "180s"
    assert raw.bgp_communities == {"bar": "64512:1234"}
    assert raw.pools[0].auto_assign is False
    assert raw.pools[1].auto_assign is None


def test_raw_config_unknown_field():
    with pytest.raises(ConfigError):
        RawConfig.from_yaml("unknown: 1\n")


def test_hold_and_keepalive():
    assert parse_hold_time("") == timedelta(seconds=90)
    assert parse_hold_time("0") == timedelta(0)
    assert parse_hold_time("180s") == timedelta(seconds=180)
    assert parse_keepalive_time(timedelta(seconds=180), "") == timedelta(seconds=60)
    with pytest.raises(ConfigError):
        parse_hold_time("1s")
    with pytest.raises(ConfigError):
        parse_keepalive_time(timedelta(seconds=90), "bogus")


def test_community_round_trip():
    assert parse_community("64512:1234") == 0xFC0004D2
    assert parse_community("1234:2345") == 0x04D20929
    for text in ("64512:1234", "0:0", "65535:65535"):
        assert community_to_string(parse_community(text)) == text


@pytest.mark.parametrize("bad", ["1234", "99999999:1", "1:99999999", "a:b", "1:2:3"])
def test_community_errors(bad):
    with pytest.raises(ConfigError):
        parse_community(bad)


def test_parse_cidr():
    assert parse_cidr("40.0.0.250 - 40.0.0.250") == _nets("40.0.0.250/32")
    assert parse_cidr("10.20.30.40/24") == _nets("10.20.30.0/24")
    for bad in ("1.2.3.4", "1.2.3.0/33", "1.2.3.10-1.2.3.1", "x-1.2.3.4"):
        with pytest.raises(ConfigError):
            parse_cidr(bad)


def test_cidrs_overlap():
    a, b, c = _nets("10.0.0.0/8", "10.0.0.0/16", "11.0.0.0/8")
    assert cidrs_overlap(a, b) and cidrs_overlap(b, a)
    assert cidrs_overlap(a, a)
    assert not cidrs_overlap(a, c)
    assert not cidrs_overlap(a, ip_network("2001:db8::/64"))
# metallb

Building blocks of a bare-metal load balancer that announces service
addresses over BGP.

- **Configuration** – `metallb.config.config.parse(data, validate)` reads
  the YAML configuration (peers, address pools, BGP communities, BFD
  profiles), validates it and returns a `Config`. Unknown fields, wrong
  types and invalid values raise `ConfigError`.
  `metallb.config.validate.discard_frr_only` rejects options that only an
  FRR-based setup understands (BFD profiles, keepalive times, IPv6
  aggregation lengths, IPv6 pools in BGP mode); `dont_validate` accepts
  every raw configuration.
- **Address helpers** – `parse_cidr` accepts both CIDR prefixes and
  `start-end` ranges (summarised into prefixes), `cidrs_overlap` checks two
  prefixes, `parse_community` and `community_to_string` convert
  `ASN:value` communities, and `parse_hold_time` / `parse_keepalive_time`
  handle durations such as `90s` or `1m30s`. `metallb.ipfamily`
  (`for_addresses`, `for_addresses_ips`, `for_cidr`, `for_address`) tells
  IPv4, IPv6 and dual-stack address sets apart and returns a `Family`.
- **Node selectors** – `metallb.config.selector` implements label
  selectors: `everything()`, `nothing()` and
  `from_label_selector(match_labels, match_expressions)`, whose result has
  `matches(labels)` and `is_empty()`. Bad keys, values or operators raise
  `SelectorError`.
- **BGP model** – `metallb.bgp.advertisement` defines `Advertisement`
  (prefix, next hop, local preference, communities) and the abstract
  `Session` and `SessionManager` interfaces.
- **Native BGP** – `metallb.bgp.native.messages` encodes and decodes BGP
  OPEN, UPDATE, withdraw, KEEPALIVE and NOTIFICATION messages.
  `metallb.bgp.native.native.NativeSessionManager.new_session(...)` starts a
  `NativeSession` that connects to the peer in the background, reconnects
  with exponential backoff (`metallb.bgp.native.backoff.Backoff`), sends
  keepalives at a third of the negotiated hold time, and pushes the
  advertisements given to `set(...)`. A password turns on TCP MD5
  signatures (Linux). Only IPv4 prefixes can be advertised;
  `sync_bfd_profiles` always raises `ValueError`.
- **FRR status** – `metallb.bgp.frr.parse` reads the JSON output of
  `vtysh` for neighbours, routes and BFD peers.
- **Metrics** – `metallb.metrics` provides `Counter`, `Gauge`,
  `CounterVec`, `GaugeVec` and a `Registry` whose `collect()` returns the
  current samples; `REGISTRY` is the shared one.
  `metallb.bgp.native.stats.Metrics` tracks per-peer session state, update
  counts and prefix counts, and `metallb.k8s` holds the Kubernetes client
  counters together with `EpsOrSliceType` and `is_condition_ready`.

## Parsing a configuration

```python
from metallb.config.config import parse, parse_community, community_to_string
from metallb.config.validate import dont_validate, discard_frr_only

text = """
peers:
- my-asn: 64500
  peer-asn: 64501
  peer-address: 10.0.0.1
bgp-communities:
  edge: 64512:1234
address-pools:
- name: default
  protocol: bgp
  addresses:
  - 192.168.10.0/24
  - 192.168.20.10-192.168.20.20
  bgp-advertisements:
  - communities: ["edge"]
"""

cfg = parse(text, dont_validate)     # every option allowed
cfg = parse(text, discard_frr_only)  # FRR-only options rejected

assert parse_community("64512:1234") == 0xFC0004D2
assert community_to_string(0xFC0004D2) == "64512:1234"
```

Hold times default to 90 seconds and must be 0 or at least 3 seconds; the
keepalive time defaults to a third of the hold time and may not exceed it.
Peers default to port 179 and to a selector that matches every node.
Address pools default to `auto-assign: true` and must not overlap, within
a pool or across pools.

## Encoding BGP messages

```python
import io
from datetime import timedelta
from metallb.bgp.native.messages import send_open, read_open

buf = io.BytesIO()
send_open(buf, 12345, "1.2.3.4", timedelta(seconds=4))
buf.seek(0)
op = read_open(buf)
assert op.asn == 12345 and op.hold_time == timedelta(seconds=4)
```

Malformed messages raise `BGPError`; a NOTIFICATION from the peer raises
`BGPNotification`, which carries the code and its description.

## Reading FRR status

```python
from metallb.bgp.frr.parse import parse_neighbours, parse_routes, parse_bfd_peers

neighbours = parse_neighbours(vtysh_json)  # output of "show bgp neighbor json"
routes = parse_routes(routes_json)          # keyed by destination address
bfd_peers = parse_bfd_peers(bfd_json)       # keyed by peer address
```

Malformed output raises `ParseError`.

## What the package does not do

- It does not generate, write or reload FRR configuration files, and has
  no session manager that drives FRR; on the FRR side it only parses
  `vtysh` output.
- It has no command-line program and no Kubernetes controller or speaker:
  nothing watches the cluster, allocates addresses or decides which
  sessions to open.
- Metrics are kept in process only; nothing serves them over HTTP.

## Tests

The test suite uses pytest and needs the `test` extra.
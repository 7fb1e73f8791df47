"""Per-peer statistics of native BGP sessions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from metallb.metrics import REGISTRY, CounterVec, GaugeVec, Registry

NAMESPACE = "metallb"
SUBSYSTEM = "bgp"
LABELS = ("peer",)


@dataclass(frozen=True)
class _Stat:
    name: str
    help: str


SESSION_UP = _Stat("session_up", "BGP session state (1 is up, 0 is down)")
UPDATES_SENT = _Stat("updates_total", "Number of BGP UPDATE messages sent")
PREFIXES = _Stat(
    "announced_prefixes_total",
    "Number of prefixes currently being advertised on the BGP session",
)
PENDING_PREFIXES = _Stat(
    "pending_prefixes_total",
    "Number of prefixes that should be advertised on the BGP session",
)


class Metrics:
    """Session state, update counts and prefix counts, labelled by peer."""

    def __init__(self, registry: Optional[Registry] = None) -> None:
        kw = {"namespace": NAMESPACE, "subsystem": SUBSYSTEM}
        self.session_up_gauge = GaugeVec(SESSION_UP.name, SESSION_UP.help, LABELS, **kw)
        self.updates_sent_counter = CounterVec(UPDATES_SENT.name, UPDATES_SENT.help, LABELS, **kw)
        self.prefixes_gauge = GaugeVec(PREFIXES.name, PREFIXES.help, LABELS, **kw)
        self.pending_prefixes_gauge = GaugeVec(
            PENDING_PREFIXES.name, PENDING_PREFIXES.help, LABELS, **kw
        )
        if registry is not None:
            for metric in (
                self.session_up_gauge,
                self.updates_sent_counter,
                self.prefixes_gauge,
                self.pending_prefixes_gauge,
            ):
                registry.register(metric)

    def new_session(self, addr: str) -> None:
        self.session_up_gauge.labels(addr).set(0)
        self.prefixes_gauge.labels(addr).set(0)
        self.pending_prefixes_gauge.labels(addr).set(0)
        self.updates_sent_counter.labels(addr).inc(0)

    def delete_session(self, addr: str) -> None:
        self.session_up_gauge.remove(addr)
        self.prefixes_gauge.remove(addr)
        self.pending_prefixes_gauge.remove(addr)
        self.updates_sent_counter.remove(addr)

    def session_up(self, addr: str) -> None:
        self.session_up_gauge.labels(addr).set(1)
        self.prefixes_gauge.labels(addr).set(0)

    def session_down(self, addr: str) -> None:
        self.session_up_gauge.labels(addr).set(0)
        self.prefixes_gauge.labels(addr).set(0)

    def update_sent(self, addr: str) -> None:
        self.updates_sent_counter.labels(addr).inc()

    def pending_prefixes(self, addr: str, n: int) -> None:
        self.pending_prefixes_gauge.labels(addr).set(n)

    def advertised_prefixes(self, addr: str, n: int) -> None:
        self.prefixes_gauge.labels(addr).set(n)
        self.pending_prefixes_gauge.labels(addr).set(n)


stats = Metrics(REGISTRY)
from metallb.bgp.native.stats import Metrics, stats
from metallb.metrics import REGISTRY, Registry

ADDR = "10.0.0.1:179"


def _peer_samples(registry, addr):
    return {s.name: s.value for s in registry.collect() if s.labels.get("peer") == addr}


def test_new_session_creates_all_series():
    reg = Registry()
    m = Metrics(reg)
    m.new_session(ADDR)
    samples = _peer_samples(reg, ADDR)
    assert len(samples) == 4
    assert all(v == 0 for v in samples.values())


def test_session_up_and_down():
    m = Metrics(Registry())
    m.session_up(ADDR)
    assert m.session_up_gauge.labels(ADDR).value == 1
    m.advertised_prefixes(ADDR, 3)
    m.session_down(ADDR)
    assert m.session_up_gauge.labels(ADDR).value == 0
    assert m.prefixes_gauge.labels(ADDR).value == 0


def test_update_sent_counts():
    m = Metrics(Registry())
    m.update_sent(ADDR)
    m.update_sent(ADDR)
    assert m.updates_sent_counter.labels(ADDR).value == 2


def test_pending_and_advertised_prefixes():
    m = Metrics(Registry())
    m.pending_prefixes(ADDR, 5)
    assert m.pending_prefixes_gauge.labels(ADDR).value == 5
    m.advertised_prefixes(ADDR, 3)
    assert m.prefixes_gauge.labels(ADDR).value == 3
    assert m.pending_prefixes_gauge.labels(ADDR).value == 3


def test_delete_session_removes_series():
    reg = Registry()
    m = Metrics(reg)
    m.new_session(ADDR)
    m.new_session("other")
    m.delete_session(ADDR)
    assert _peer_samples(reg, ADDR) == {}
    assert len(_peer_samples(reg, "other")) == 4


def test_module_stats_registered_globally():
    names = {s.name for s in REGISTRY.collect()}
    stats.new_session("global-peer")
    names = {s.name for s in REGISTRY.collect()}
    assert stats.session_up_gauge.name in names
    assert stats.session_up_gauge.name.endswith("session_up")
    stats.delete_session("global-peer")
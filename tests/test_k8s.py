from types import SimpleNamespace

import pytest

from metallb import k8s
from metallb.metrics import REGISTRY


@pytest.mark.parametrize(
    "conditions, expected",
    [
        ({}, True),
        ({"ready": None}, True),
        ({"ready": True}, True),
        ({"ready": False}, False),
        (SimpleNamespace(ready=None), True),
        (SimpleNamespace(ready=False), False),
    ],
)
def test_is_condition_ready(conditions, expected):
    assert k8s.is_condition_ready(conditions) is expected


def test_eps_or_slice_type_order():
    assert [t.value for t in k8s.EpsOrSliceType] == sorted(t.value for t in k8s.EpsOrSliceType)
    assert k8s.EpsOrSliceType(0) is k8s.EpsOrSliceType.UNKNOWN


def test_stats_registered():
    names = {s.name for s in REGISTRY.collect()}
    for metric in (k8s.updates, k8s.update_errors, k8s.config_loaded, k8s.config_stale):
        assert metric.name in names
    assert k8s.updates.name.endswith("updates_total")
    assert k8s.config_stale.name.startswith("metallb_k8s_client")


def test_updates_counter_increments():
    before = {m.name: m.value for m in REGISTRY.collect()}[k8s.updates.name]
    k8s.updates.inc()
    after = {m.name: m.value for m in REGISTRY.collect()}[k8s.updates.name]
    assert after == before + 1
"""Kubernetes endpoint helpers and client statistics."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Mapping

from metallb.metrics import REGISTRY, Counter, Gauge


class EpsOrSliceType(IntEnum):
    """Whether a service's endpoints come as Endpoints or EndpointSlices."""

    UNKNOWN = 0
    EPS = 1
    SLICES = 2


def is_condition_ready(conditions: Any) -> bool:
    """Return whether endpoint conditions are ready; a missing ready flag counts as ready."""
    if isinstance(conditions, Mapping):
        ready = conditions.get("ready")
    else:
        ready = getattr(conditions, "ready", None)
    if ready is None:
        return True
    return bool(ready)


updates = Counter(
    "updates_total",
    "Number of k8s object updates that have been processed.",
    namespace="metallb",
    subsystem="k8s_client",
)
update_errors = Counter(
    "update_errors_total",
    "Number of k8s object updates that failed for some reason.",
    namespace="metallb",
    subsystem="k8s_client",
)
config_loaded = Gauge(
    "config_loaded_bool",
    "1 if the MetalLB configuration was successfully loaded at least once.",
    namespace="metallb",
    subsystem="k8s_client",
)
config_stale = Gauge(
    "config_stale_bool",
    "1 if running on a stale configuration, because the latest config failed to load.",
    namespace="metallb",
    subsystem="k8s_client",
)

for _metric in (updates, update_errors, config_loaded, config_stale):
    REGISTRY.register(_metric)
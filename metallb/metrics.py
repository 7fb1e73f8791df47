"""A small in-process metrics registry with counters and gauges."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Generic, Iterable, TypeVar, Union


def _full_name(namespace: str, subsystem: str, name: str) -> str:
    return "_".join(part for part in (namespace, subsystem, name) if part)


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help: str = "", namespace: str = "", subsystem: str = ""):
        self.name = _full_name(namespace, subsystem, name)
        self.help = help


class Counter(_Metric):
    """A value that only goes up."""

    kind = "counter"

    def __init__(self, name: str, help: str = "", namespace: str = "", subsystem: str = ""):
        super().__init__(name, help, namespace, subsystem)
        self._value = 0.0
        self._lock = threading.Lock()

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("counters can only increase")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value


class Gauge(_Metric):
    """A value that can go up and down."""

    kind = "gauge"

    def __init__(self, name: str, help: str = "", namespace: str = "", subsystem: str = ""):
        super().__init__(name, help, namespace, subsystem)
        self._value = 0.0
        self._lock = threading.Lock()

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value += amount

    def dec(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value -= amount

    @property
    def value(self) -> float:
        return self._value


M = TypeVar("M", Counter, Gauge)


class _Vec(_Metric, Generic[M]):
    _child_type: type

    def __init__(
        self,
        name: str,
        help: str,
        label_names: Iterable[str],
        namespace: str = "",
        subsystem: str = "",
    ):
        super().__init__(name, help, namespace, subsystem)
        self.label_names = tuple(label_names)
        self._children: dict[tuple[str, ...], M] = {}
        self._lock = threading.Lock()

    def _key(self, args: tuple) -> tuple[str, ...]:
        if len(args) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(args)}"
            )
        return tuple(str(a) for a in args)

    def labels(self, *args: str) -> M:
        """Return the child for these label values, creating it if needed."""
        key = self._key(args)
        with self._lock:
            child = self._children.get(key)
            if child is None:
                child = self._child_type(self.name, self.help)
                self._children[key] = child
            return child

    def remove(self, *args: str) -> bool:
        """Drop the child for these label values; return whether it existed."""
        key = self._key(args)
        with self._lock:
            return self._children.pop(key, None) is not None

    def _items(self) -> list[tuple[tuple[str, ...], M]]:
        with self._lock:
            return sorted(self._children.items())


class CounterVec(_Vec[Counter]):
    """Counters partitioned by label values."""

    kind = "counter"
    _child_type = Counter

    def labels(self, *args: str) -> Counter:
        return super().labels(*args)

    def remove(self, *args: str) -> bool:
        return super().remove(*args)


class GaugeVec(_Vec[Gauge]):
    """Gauges partitioned by label values."""

    kind = "gauge"
    _child_type = Gauge

    def labels(self, *args: str) -> Gauge:
        return super().labels(*args)

    def remove(self, *args: str) -> bool:
        return super().remove(*args)


AnyMetric = Union[Counter, Gauge, CounterVec, GaugeVec]


@dataclass
class Sample:
    """One observed value."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    value: float = 0.0


class Registry:
    """A set of uniquely named metrics."""

    def __init__(self) -> None:
        self._metrics: dict[str, AnyMetric] = {}
        self._lock = threading.Lock()

    def register(self, metric: AnyMetric) -> None:
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"duplicate metric {metric.name}")
            self._metrics[metric.name] = metric

    def collect(self) -> list[Sample]:
        """Return the current value of every registered metric."""
        with self._lock:
            metrics = list(self._metrics.values())
        samples = []
        for metric in metrics:
            if isinstance(metric, _Vec):
                for key, child in metric._items():
                    samples.append(
                        Sample(metric.name, dict(zip(metric.label_names, key)), child.value)
                    )
            else:
                samples.append(Sample(metric.name, {}, metric.value))
        return samples


REGISTRY = Registry()
"""Kubernetes-style label selectors for choosing nodes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Sequence


class SelectorError(ValueError):
    """Raised when a label selector is malformed."""


class Operator(str, Enum):
    EQUALS = "="
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"


_NAME_RE = re.compile(r"^([A-Za-z0-9][-A-Za-z0-9_.]*)?[A-Za-z0-9]$")
_DNS_SUBDOMAIN_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")


def _validate_key(key: str) -> None:
    parts = key.split("/")
    if len(parts) == 1:
        name = parts[0]
    elif len(parts) == 2:
        prefix, name = parts
        if not prefix:
            raise SelectorError(f"invalid label key {key!r}: prefix part must be non-empty")
        if len(prefix) > 253 or not _DNS_SUBDOMAIN_RE.match(prefix):
            raise SelectorError(f"invalid label key {key!r}: prefix must be a DNS subdomain")
    else:
        raise SelectorError(f"invalid label key {key!r}: at most one '/' allowed")
    if not name:
        raise SelectorError(f"invalid label key {key!r}: name part must be non-empty")
    if len(name) > 63 or not _NAME_RE.match(name):
        raise SelectorError(f"invalid label key {key!r}: name part is not a valid qualified name")


def _validate_value(value: str) -> None:
    if value == "":
        return
    if len(value) > 63 or not _NAME_RE.match(value):
        raise SelectorError(f"invalid label value {value!r}")


@dataclass(frozen=True)
class Requirement:
    """One condition on a label."""

    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _validate_key(self.key)
        if self.operator in (Operator.IN, Operator.NOT_IN):
            if not self.values:
                raise SelectorError("for 'in', 'notin' operators, values set can't be empty")
        elif self.operator == Operator.EQUALS:
            if len(self.values) != 1:
                raise SelectorError("exact-match compatibility requires one single value")
        elif self.values:
            raise SelectorError("values set must be empty for exists and does not exist")
        for v in self.values:
            _validate_value(v)
        object.__setattr__(self, "values", tuple(sorted(self.values)))

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.operator in (Operator.EQUALS, Operator.IN):
            return self.key in labels and labels[self.key] in self.values
        if self.operator == Operator.NOT_IN:
            return self.key not in labels or labels[self.key] not in self.values
        if self.operator == Operator.EXISTS:
            return self.key in labels
        return self.key not in labels

    def __str__(self) -> str:
        if self.operator == Operator.EQUALS:
            return f"{self.key}={self.values[0]}"
        if self.operator == Operator.IN:
            return f"{self.key} in ({','.join(self.values)})"
        if self.operator == Operator.NOT_IN:
            return f"{self.key} notin ({','.join(self.values)})"
        if self.operator == Operator.EXISTS:
            return self.key
        return f"!{self.key}"


@dataclass(frozen=True)
class Selector:
    """A conjunction of label requirements."""

    requirements: tuple[Requirement, ...] = ()
    matches_nothing: bool = field(default=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "requirements",
            tuple(sorted(self.requirements, key=lambda r: r.key)),
        )

    def matches(self, labels: Mapping[str, str]) -> bool:
        if self.matches_nothing:
            return False
        return all(r.matches(labels) for r in self.requirements)

    def is_empty(self) -> bool:
        return not self.matches_nothing and not self.requirements

    def __str__(self) -> str:
        return ",".join(str(r) for r in self.requirements)


def everything() -> Selector:
    """A selector that matches every set of labels."""
    return Selector()


def nothing() -> Selector:
    """A selector that matches no labels at all."""
    return Selector(matches_nothing=True)


_OPERATORS = {
    "In": Operator.IN,
    "NotIn": Operator.NOT_IN,
    "Exists": Operator.EXISTS,
    "DoesNotExist": Operator.DOES_NOT_EXIST,
}


def from_label_selector(
    match_labels: Mapping[str, str],
    match_expressions: Iterable[tuple[str, str, Sequence[str]]],
) -> Selector:
    """Build a selector from match labels and (key, operator, values) expressions."""
    expressions = list(match_expressions)
    if not match_labels and not expressions:
        return everything()
    reqs = [Requirement(k, Operator.EQUALS, (v,)) for k, v in match_labels.items()]
    for key, op, values in expressions:
        operator = _OPERATORS.get(op)
        if operator is None:
            raise SelectorError(f'"{op}" is not a valid pod selector operator')
        reqs.append(Requirement(key, operator, tuple(values)))
    return Selector(tuple(reqs))
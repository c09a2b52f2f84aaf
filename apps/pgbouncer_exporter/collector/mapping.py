"""
Column mappings and the metric descriptors derived from them.

A namespace mapping is built once at startup from the static mapping
definition (see ``metric_map.py``) and is read-only afterwards.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class ColumnUsage(str, Enum):
    LABEL = "LABEL"
    COUNTER = "COUNTER"
    GAUGE = "GAUGE"
    # Microsecond values published as seconds
    GAUGE_SCALED = "GAUGE_SCALED"


class MetricKind(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


class RowStrategy(str, Enum):
    """How the rows of a namespace query turn into samples."""

    WIDE = "wide"
    KEY_VALUE = "key_value"


# usage -> (kind, multiplier); LABEL columns never become metrics
_USAGE_KINDS: Dict[ColumnUsage, Tuple[MetricKind, float]] = {
    ColumnUsage.COUNTER: (MetricKind.COUNTER, 1.0),
    ColumnUsage.GAUGE: (MetricKind.GAUGE, 1.0),
    ColumnUsage.GAUGE_SCALED: (MetricKind.GAUGE, 1e-6),
}


@dataclass(frozen=True)
class ColumnMapping:
    usage: ColumnUsage
    metric_name: Optional[str] = None
    description: str = ""

    def __post_init__(self) -> None:
        # Raises ValueError for anything outside the enumeration
        object.__setattr__(self, "usage", ColumnUsage(self.usage))


@dataclass(frozen=True)
class MetricDescriptor:
    """Stable identity of an exported metric."""

    name: str
    kind: MetricKind
    label_names: Tuple[str, ...] = ()
    documentation: str = ""

    def __post_init__(self) -> None:
        if not _METRIC_NAME_RE.match(self.name):
            raise ValueError(f"Invalid metric name: {self.name!r}")
        for label in self.label_names:
            if not _LABEL_NAME_RE.match(label):
                raise ValueError(f"Invalid label name {label!r} for metric {self.name}")

    @property
    def exposed_names(self) -> Tuple[str, ...]:
        """Names this metric occupies in a registry, including counter suffixes."""
        if self.kind is MetricKind.COUNTER:
            base = self.name[: -len("_total")] if self.name.endswith("_total") else self.name
            return (base, f"{base}_total", f"{base}_created")
        return (self.name,)

    def new_family(self) -> Metric:
        """Create an empty metric family for this descriptor."""
        labels = list(self.label_names)
        if self.kind is MetricKind.COUNTER:
            return CounterMetricFamily(self.name, self.documentation, labels=labels)
        return GaugeMetricFamily(self.name, self.documentation, labels=labels)


class MetricSample(NamedTuple):
    descriptor: MetricDescriptor
    value: float
    label_values: Tuple[str, ...] = ()


Emit = Callable[[MetricSample], None]


@dataclass(frozen=True)
class MetricMap:
    descriptor: MetricDescriptor
    multiplier: float


@dataclass(frozen=True)
class NamespaceMapping:
    namespace: str
    strategy: RowStrategy
    columns: Mapping[str, ColumnMapping]
    labels: Tuple[str, ...]
    metrics: Mapping[str, MetricMap] = field(repr=False)

    @property
    def query(self) -> str:
        return f"SHOW {self.namespace};"


ColumnSpec = Union[ColumnMapping, Tuple]


def _as_column_mapping(spec: ColumnSpec) -> ColumnMapping:
    if isinstance(spec, ColumnMapping):
        return spec
    return ColumnMapping(*spec)


def qualified_name(*parts: str) -> str:
    return "_".join(p for p in parts if p)


def build_namespace_mapping(
    global_namespace: str,
    namespace: str,
    columns: Mapping[str, ColumnSpec],
    strategy: RowStrategy = RowStrategy.WIDE,
) -> NamespaceMapping:
    """
    Derive descriptors and multipliers for one namespace.

    Label names keep the column order of the definition; that order is the
    label order of every sample emitted for this namespace.
    """
    strategy = RowStrategy(strategy)
    resolved = {name: _as_column_mapping(spec) for name, spec in columns.items()}

    labels: List[str] = [
        name for name, mapping in resolved.items() if mapping.usage is ColumnUsage.LABEL
    ]
    if strategy is RowStrategy.KEY_VALUE and labels:
        raise ValueError(f"Key/value namespace {namespace!r} cannot declare label columns")

    metrics: Dict[str, MetricMap] = {}
    for column, mapping in resolved.items():
        if mapping.usage is ColumnUsage.LABEL:
            continue
        kind, multiplier = _USAGE_KINDS[mapping.usage]
        descriptor = MetricDescriptor(
            name=qualified_name(global_namespace, namespace, mapping.metric_name or column),
            kind=kind,
            label_names=tuple(labels),
            documentation=mapping.description,
        )
        metrics[column] = MetricMap(descriptor=descriptor, multiplier=multiplier)

    return NamespaceMapping(
        namespace=namespace,
        strategy=strategy,
        columns=MappingProxyType(resolved),
        labels=tuple(labels),
        metrics=MappingProxyType(metrics),
    )


def build_metric_map(
    global_namespace: str,
    row_maps: Mapping[str, Mapping[str, ColumnSpec]],
    kv_maps: Mapping[str, Mapping[str, ColumnSpec]],
) -> Tuple[NamespaceMapping, ...]:
    """Build every namespace mapping: wide-row namespaces first, then key/value ones."""
    mappings: List[NamespaceMapping] = []
    for namespace, columns in row_maps.items():
        mappings.append(build_namespace_mapping(global_namespace, namespace, columns, RowStrategy.WIDE))
    for namespace, columns in kv_maps.items():
        mappings.append(build_namespace_mapping(global_namespace, namespace, columns, RowStrategy.KEY_VALUE))
    check_unique_names(mappings)
    return tuple(mappings)


def check_unique_names(
    mappings: Iterable[NamespaceMapping],
    reserved: Iterable[MetricDescriptor] = (),
) -> None:
    """
    Reject definitions whose exposed sample names collide.

    Counters occupy their ``_total`` and ``_created`` names as well, so a
    gauge ``x_total`` clashes with a counter ``x``. ``reserved`` holds
    descriptors published outside the mappings (the exporter meta-metrics).
    """
    seen: Dict[str, str] = {}

    def _claim(descriptor: MetricDescriptor, owner: str) -> None:
        for name in descriptor.exposed_names:
            if name in seen:
                raise ValueError(f"Metric {name} is produced by both {seen[name]} and {owner}")
            seen[name] = owner

    for descriptor in reserved:
        _claim(descriptor, descriptor.name)
    for mapping in mappings:
        for column, metric in mapping.metrics.items():
            _claim(metric.descriptor, f"{mapping.namespace}.{column}")

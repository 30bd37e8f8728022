# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Observation sinks the collectors write into."""

import threading
from collections.abc import Mapping

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from nvgpu_exporter.common.enums import MetricKind
from nvgpu_exporter.common.environment import Environment
from nvgpu_exporter.common.exceptions import MetricRegistrationError
from nvgpu_exporter.common.mixins import ExporterLoggerMixin
from nvgpu_exporter.telemetry.metrics import METRIC_CATALOG, MetricSpec

__all__ = [
    "InMemoryObservationSink",
    "PrometheusObservationSink",
]

LabelKey = frozenset[tuple[str, str]]


class PrometheusObservationSink(ExporterLoggerMixin):
    """Writes observations into a prometheus_client registry.

    Metric families are created on first use from the catalog, so a registry
    only exposes families that were actually observed. Every observation is
    checked against its catalog entry: unknown names, a gauge/counter mismatch
    or a label set that differs from the catalog raise
    :class:`MetricRegistrationError`.

    Args:
        registry: Registry to register families in (default: a new private registry)
        namespace: Metric name prefix (default: from Environment)
        catalog: Metric specs by unprefixed name
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        namespace: str | None = None,
        catalog: Mapping[str, MetricSpec] = METRIC_CATALOG,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = (
            namespace if namespace is not None else Environment.METRICS.NAMESPACE
        )
        self.catalog = dict(catalog)
        self._families: dict[str, Gauge | Counter] = {}
        self._lock = threading.Lock()

    def set_gauge(self, name: str, labels: Mapping[str, str], value: float) -> None:
        self._family(name, labels, MetricKind.GAUGE).labels(**labels).set(value)

    def increment_counter(
        self, name: str, labels: Mapping[str, str], amount: float = 1.0
    ) -> None:
        self._family(name, labels, MetricKind.COUNTER).labels(**labels).inc(amount)

    def render(self) -> bytes:
        """The registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def _family(
        self, name: str, labels: Mapping[str, str], kind: MetricKind
    ) -> Gauge | Counter:
        spec = self.catalog.get(name)
        if spec is None:
            raise MetricRegistrationError(f"Unknown metric: {name}")
        if spec.kind != kind:
            raise MetricRegistrationError(
                f"Metric {name} is a {spec.kind}, not a {kind}"
            )
        if set(labels) != set(spec.labels):
            raise MetricRegistrationError(
                f"Metric {name} expects labels {sorted(spec.labels)}, got {sorted(labels)}"
            )

        with self._lock:
            family = self._families.get(name)
            if family is None:
                family_cls = Counter if kind == MetricKind.COUNTER else Gauge
                family = family_cls(
                    spec.name,
                    spec.help,
                    labelnames=spec.labels,
                    namespace=self.namespace,
                    registry=self.registry,
                )
                self._families[name] = family
                self.debug(lambda: f"Registered {kind} {self.namespace}_{name}")
        return family


class InMemoryObservationSink:
    """Records the last gauge value and the running counter total per label set.

    Used by tests and dry runs. Safe for concurrent use.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.gauges: dict[str, dict[LabelKey, float]] = {}
        self.counters: dict[str, dict[LabelKey, float]] = {}

    def set_gauge(self, name: str, labels: Mapping[str, str], value: float) -> None:
        with self._lock:
            self.gauges.setdefault(name, {})[_label_key(labels)] = float(value)

    def increment_counter(
        self, name: str, labels: Mapping[str, str], amount: float = 1.0
    ) -> None:
        with self._lock:
            series = self.counters.setdefault(name, {})
            key = _label_key(labels)
            series[key] = series.get(key, 0.0) + amount

    def gauge(self, name: str, **labels: str) -> float | None:
        """Last value set for ``name`` with exactly ``labels``, or None."""
        with self._lock:
            return self.gauges.get(name, {}).get(_label_key(labels))

    def counter(self, name: str, **labels: str) -> float:
        with self._lock:
            return self.counters.get(name, {}).get(_label_key(labels), 0.0)

    def samples(self, name: str) -> list[tuple[dict[str, str], float]]:
        """Every (labels, value) recorded for ``name``, gauges and counters alike."""
        with self._lock:
            series = {**self.gauges.get(name, {}), **self.counters.get(name, {})}
            return [(dict(key), value) for key, value in series.items()]

    def clear(self) -> None:
        with self._lock:
            self.gauges.clear()
            self.counters.clear()


def _label_key(labels: Mapping[str, str]) -> LabelKey:
    return frozenset((key, str(value)) for key, value in labels.items())

# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
import threading

import pytest
from prometheus_client import CollectorRegistry

from nvgpu_exporter.common.exceptions import MetricRegistrationError
from nvgpu_exporter.common.protocols import ObservationSinkProtocol
from nvgpu_exporter.telemetry.metrics import METRIC_CATALOG
from nvgpu_exporter.telemetry.sink import (
    InMemoryObservationSink,
    PrometheusObservationSink,
)

XID_LABELS = {"UUID": "GPU-a", "pci_bus_id": "00000000:3B:00.0", "xid": "79"}
NVLINK_LABELS = {
    "uuid": "GPU-a",
    "pci_bus_id": "00000000:3B:00.0",
    "link": "0",
    "error_type": "malformed_packet_errors",
}


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def prometheus_sink(registry) -> PrometheusObservationSink:
    return PrometheusObservationSink(registry=registry, namespace="test")


class TestMetricCatalog:
    """Tests for the exported metric catalog."""

    def test_catalog_keys_match_names(self):
        for name, spec in METRIC_CATALOG.items():
            assert name == spec.name

    def test_labels_are_unique(self):
        for spec in METRIC_CATALOG.values():
            assert len(set(spec.labels)) == len(spec.labels), spec.name


class TestPrometheusObservationSink:
    """Tests for the prometheus_client backed sink."""

    def test_implements_protocol(self, prometheus_sink):
        assert isinstance(prometheus_sink, ObservationSinkProtocol)

    def test_set_gauge(self, prometheus_sink, registry):
        prometheus_sink.set_gauge("nvlink_errors_total", NVLINK_LABELS, 5)
        prometheus_sink.set_gauge("nvlink_errors_total", NVLINK_LABELS, 7)

        assert registry.get_sample_value("test_nvlink_errors_total", NVLINK_LABELS) == 7.0

    def test_increment_counter(self, prometheus_sink, registry):
        prometheus_sink.increment_counter("xid_errors_total", XID_LABELS)
        prometheus_sink.increment_counter("xid_errors_total", XID_LABELS)

        assert registry.get_sample_value("test_xid_errors_total", XID_LABELS) == 2.0

    def test_families_created_lazily(self, prometheus_sink):
        assert b"test_xid_errors" not in prometheus_sink.render()

        prometheus_sink.increment_counter("xid_errors_total", XID_LABELS)

        assert b"test_xid_errors_total" in prometheus_sink.render()

    def test_unknown_metric_raises(self, prometheus_sink):
        with pytest.raises(MetricRegistrationError, match="Unknown metric"):
            prometheus_sink.set_gauge("gpu_temperature", {}, 1)

    def test_kind_mismatch_raises(self, prometheus_sink):
        with pytest.raises(MetricRegistrationError, match="is a counter"):
            prometheus_sink.set_gauge("xid_errors_total", XID_LABELS, 1)

    @pytest.mark.parametrize(
        "labels",
        [
            pytest.param({"UUID": "GPU-a", "pci_bus_id": "0"}, id="missing-label"),
            pytest.param({**XID_LABELS, "extra": "x"}, id="extra-label"),
        ],
    )
    def test_label_mismatch_raises(self, prometheus_sink, labels):
        with pytest.raises(MetricRegistrationError, match="expects labels"):
            prometheus_sink.increment_counter("xid_errors_total", labels)

    def test_concurrent_first_use_registers_once(self, prometheus_sink, registry):
        def worker():
            for _ in range(100):
                prometheus_sink.increment_counter("xid_errors_total", XID_LABELS)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert registry.get_sample_value("test_xid_errors_total", XID_LABELS) == 400.0


class TestInMemoryObservationSink:
    """Tests for the in-memory sink used by tests and dry runs."""

    def test_implements_protocol(self):
        assert isinstance(InMemoryObservationSink(), ObservationSinkProtocol)

    def test_gauge_keeps_last_value(self, sink):
        sink.set_gauge("fabric_state", {"UUID": "GPU-a"}, 1)
        sink.set_gauge("fabric_state", {"UUID": "GPU-a"}, 3)

        assert sink.gauge("fabric_state", UUID="GPU-a") == 3.0

    def test_counter_accumulates(self, sink):
        sink.increment_counter("xid_errors_total", XID_LABELS)
        sink.increment_counter("xid_errors_total", XID_LABELS, 2.0)

        assert sink.counter("xid_errors_total", **XID_LABELS) == 3.0

    def test_label_order_is_irrelevant(self, sink):
        sink.set_gauge("m", {"a": "1", "b": "2"}, 1)
        assert sink.gauge("m", b="2", a="1") == 1.0

    def test_missing_series(self, sink):
        assert sink.gauge("m", a="1") is None
        assert sink.counter("m", a="1") == 0.0
        assert sink.samples("m") == []

    def test_samples_and_clear(self, sink):
        sink.set_gauge("m", {"a": "1"}, 1)
        sink.set_gauge("m", {"a": "2"}, 2)

        assert sorted(sink.samples("m"), key=lambda s: s[1]) == [
            ({"a": "1"}, 1.0),
            ({"a": "2"}, 2.0),
        ]

        sink.clear()
        assert sink.samples("m") == []

# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

from nvgpu_exporter.telemetry.bitmask import (
    FABRIC_HEALTH_MASK_FIELDS,
    DecodedMaskField,
    MaskField,
    decode_mask,
    summarize_fabric_health,
)
from nvgpu_exporter.telemetry.codec import (
    decode_ber,
    decode_field_result,
    decode_field_value,
    encode_field_value,
)
from nvgpu_exporter.telemetry.collectors import (
    BaseCollector,
    ClockEventCollector,
    FabricHealthCollector,
    InventoryCollector,
    NVLinkErrorCollector,
    TopologyCollector,
    VersionsProvider,
)
from nvgpu_exporter.telemetry.engine import TelemetryEngine
from nvgpu_exporter.telemetry.events import (
    EventCollector,
    FaultCountTable,
    FaultSubscriber,
)
from nvgpu_exporter.telemetry.field_index import (
    DeviceFieldBatch,
    FieldDescriptor,
    LinkFieldBatch,
    build_device_field_batch,
    build_link_field_batch,
)
from nvgpu_exporter.telemetry.metrics import METRIC_CATALOG, MetricSpec
from nvgpu_exporter.telemetry.scheduler import CollectFunction, PollingScheduler
from nvgpu_exporter.telemetry.sink import (
    InMemoryObservationSink,
    PrometheusObservationSink,
)
from nvgpu_exporter.telemetry.topology import (
    TopologyGraphBuilder,
    format_affinity,
    pci_device_key,
)

__all__ = [
    "BaseCollector",
    "ClockEventCollector",
    "CollectFunction",
    "DecodedMaskField",
    "DeviceFieldBatch",
    "EventCollector",
    "FABRIC_HEALTH_MASK_FIELDS",
    "FabricHealthCollector",
    "FaultCountTable",
    "FaultSubscriber",
    "FieldDescriptor",
    "InMemoryObservationSink",
    "InventoryCollector",
    "LinkFieldBatch",
    "METRIC_CATALOG",
    "MaskField",
    "MetricSpec",
    "NVLinkErrorCollector",
    "PollingScheduler",
    "PrometheusObservationSink",
    "TelemetryEngine",
    "TopologyCollector",
    "TopologyGraphBuilder",
    "VersionsProvider",
    "build_device_field_batch",
    "build_link_field_batch",
    "decode_ber",
    "decode_field_result",
    "decode_field_value",
    "decode_mask",
    "encode_field_value",
    "format_affinity",
    "pci_device_key",
    "summarize_fabric_health",
]

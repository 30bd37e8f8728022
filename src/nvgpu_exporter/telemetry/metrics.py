# SPDX-FileCopyrightText: Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Catalog of every metric the collectors emit.

Names are given without the namespace prefix; the sink applies it.
"""

from pydantic import Field

from nvgpu_exporter.common.enums import MetricKind
from nvgpu_exporter.common.models import ExporterBaseModel

__all__ = [
    "CLOCK_EVENT_DURATION",
    "EXPORTER_INFO",
    "FABRIC_HEALTH",
    "FABRIC_HEALTH_SUMMARY",
    "FABRIC_INCORRECT_CONFIGURATION",
    "FABRIC_STATE",
    "FABRIC_STATUS",
    "GPU_INFO",
    "GPU_TOPOLOGY",
    "METRIC_CATALOG",
    "NIC_TOPOLOGY",
    "NVLINK_ERRORS",
    "XID_ERRORS",
    "MetricSpec",
]


class MetricSpec(ExporterBaseModel):
    """Name, help text, label names and kind of one exported metric family."""

    name: str = Field(description="Metric name without the namespace prefix")
    help: str = Field(description="Help text shown in the exposition format")
    labels: tuple[str, ...] = Field(description="Label names, in exposition order")
    kind: MetricKind = Field(default=MetricKind.GAUGE)


_FABRIC_LABELS = ("UUID", "pci_bus_id", "clique_id", "cluster_uuid")

NVLINK_ERRORS = MetricSpec(
    name="nvlink_errors_total",
    help="Total NVLink errors by type.",
    labels=("uuid", "pci_bus_id", "link", "error_type"),
)
FABRIC_HEALTH = MetricSpec(
    name="fabric_health",
    help="GPU fabric health status (1 = healthy/false, 0 = unhealthy/true).",
    labels=(*_FABRIC_LABELS, "health_field"),
)
FABRIC_STATE = MetricSpec(
    name="fabric_state",
    help="GPU fabric state (0=not_supported, 1=not_started, 2=in_progress, 3=completed).",
    labels=_FABRIC_LABELS,
)
FABRIC_STATUS = MetricSpec(
    name="fabric_status",
    help="GPU fabric status code.",
    labels=_FABRIC_LABELS,
)
FABRIC_HEALTH_SUMMARY = MetricSpec(
    name="fabric_health_summary",
    help="GPU fabric health summary (0=not_supported, 1=healthy, 2=unhealthy, 3=limited_capacity).",
    labels=_FABRIC_LABELS,
)
FABRIC_INCORRECT_CONFIGURATION = MetricSpec(
    name="fabric_incorrect_configuration",
    help=(
        "GPU fabric incorrect configuration status (0=not_supported, 1=none, "
        "2=incorrect_sysguid, 3=incorrect_chassis_sn, 4=no_partition, 5=insufficient_nvlinks)."
    ),
    labels=_FABRIC_LABELS,
)
CLOCK_EVENT_DURATION = MetricSpec(
    name="clocks_event_duration_seconds_total",
    help="Accumulated time spent throttled per NVML clock event reason.",
    labels=("UUID", "pci_bus_id", "reason"),
)
GPU_TOPOLOGY = MetricSpec(
    name="gpu_topology",
    help="GPU topology information including affinity and connections.",
    labels=(
        "UUID",
        "pci_bus_id",
        "gpu_id",
        "cpu_affinity",
        "numa_affinity",
        "gpu_numa_id",
        "peer_type",
        "peer_id",
        "connection",
    ),
)
NIC_TOPOLOGY = MetricSpec(
    name="nic_topology",
    help="NIC topology information showing NVLink connections to GPUs.",
    labels=("nic_name", "nic_id", "peer_type", "peer_id", "connection"),
)
EXPORTER_INFO = MetricSpec(
    name="exporter_info",
    help="Information about the nvgpu-exporter.",
    labels=("version", "driver_version", "nvml_version", "cuda_version"),
)
GPU_INFO = MetricSpec(
    name="gpu_info",
    help="GPU device information.",
    labels=(
        "UUID",
        "pci_bus_id",
        "name",
        "brand",
        "serial",
        "board_id",
        "vbios_version",
        "oem_inforom_version",
        "ecc_inforom_version",
        "power_inforom_version",
        "inforom_image_version",
    ),
)
XID_ERRORS = MetricSpec(
    name="xid_errors_total",
    help="Total count of GPU Xid errors by error code and GPU UUID.",
    labels=("UUID", "pci_bus_id", "xid"),
    kind=MetricKind.COUNTER,
)

METRIC_CATALOG: dict[str, MetricSpec] = {
    spec.name: spec
    for spec in (
        NVLINK_ERRORS,
        FABRIC_HEALTH,
        FABRIC_STATE,
        FABRIC_STATUS,
        FABRIC_HEALTH_SUMMARY,
        FABRIC_INCORRECT_CONFIGURATION,
        CLOCK_EVENT_DURATION,
        GPU_TOPOLOGY,
        NIC_TOPOLOGY,
        EXPORTER_INFO,
        GPU_INFO,
        XID_ERRORS,
    )
}
